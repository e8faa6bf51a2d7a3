"""Study sources and chunk index

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates:
- study_source (per-strategy source catalog)
- indexed_chunk (retrievable slices, optionally version-tagged)
- chunk_index_meta (active version pointer per strategy)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "study_source",
        sa.Column("row_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("strategy_id", sa.Text(), nullable=False),
        sa.Column("source_id", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="processing"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("chunk_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint(
            "org_id", "user_id", "strategy_id", "source_id", name="uq_study_source_scope"
        ),
    )
    op.create_index(
        "idx_study_source_strategy", "study_source", ["org_id", "user_id", "strategy_id"]
    )

    op.create_table(
        "indexed_chunk",
        sa.Column("chunk_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("strategy_id", sa.Text(), nullable=False),
        sa.Column("source_id", sa.Text(), nullable=False),
        sa.Column("ordinal", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("source_type", sa.Text(), nullable=False),
        sa.Column("source_name", sa.Text(), nullable=False),
        sa.Column("source_year", sa.Integer(), nullable=True),
        sa.Column("section", sa.Text(), nullable=False, server_default=""),
        sa.Column("version", sa.Integer(), nullable=True),
    )
    op.create_index(
        "idx_indexed_chunk_source",
        "indexed_chunk",
        ["org_id", "user_id", "strategy_id", "source_id"],
    )
    op.create_index(
        "idx_indexed_chunk_version",
        "indexed_chunk",
        ["org_id", "user_id", "strategy_id", "version"],
    )

    op.create_table(
        "chunk_index_meta",
        sa.Column("org_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("strategy_id", sa.Text(), primary_key=True),
        sa.Column("active_version", sa.Integer(), nullable=True),
        sa.Column("chunk_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("chunk_index_meta")
    op.drop_index("idx_indexed_chunk_version", table_name="indexed_chunk")
    op.drop_index("idx_indexed_chunk_source", table_name="indexed_chunk")
    op.drop_table("indexed_chunk")
    op.drop_index("idx_study_source_strategy", table_name="study_source")
    op.drop_table("study_source")
