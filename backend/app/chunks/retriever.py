"""Keyword retrieval over a strategy's enabled chunks."""

import re

from pydantic import BaseModel

from backend.app.models.sources import ChunkBundle, IndexedChunk

SOURCE_TYPE_BOOST = {
    "Previous Paper": 3.0,
    "Question Bank": 2.0,
    "Study Material": 1.0,
    "Syllabus Derived": 0.0,
}

STOP_WORDS = frozenset(
    {"the", "and", "for", "with", "what", "how", "why", "are", "was", "this", "that", "from"}
)


class ChunkMatch(BaseModel):
    """Chunk with relevance score."""

    chunk: IndexedChunk
    score: float


def query_tokens(query: str) -> list[str]:
    """Lowercase alphanumeric tokens longer than two characters, stop words removed."""
    tokens = re.split(r"[^a-z0-9]+", query.lower())
    return [t for t in dict.fromkeys(tokens) if len(t) > 2 and t not in STOP_WORDS]


def search_chunks(bundle: ChunkBundle, query: str, limit: int = 6) -> list[ChunkMatch]:
    """Search enabled chunks by query with simple token matching.

    Scoring strategy:
    - Count how many query tokens appear as substrings of the chunk text
    - Drop chunks with no hit
    - Add a boost by source type (previous papers rank above material)
    - Sort by score descending, then by position in the bundle

    Args:
        bundle: Chunks from enabled sources, in stored order
        query: Learner question
        limit: Maximum number of results

    Returns:
        Matches sorted by relevance
    """
    tokens = query_tokens(query)
    if not tokens:
        return []

    enabled = set(bundle.enabled_source_ids)
    scored: list[tuple[int, ChunkMatch]] = []
    for position, chunk in enumerate(bundle.chunks):
        if chunk.source_id not in enabled:
            continue
        text = chunk.text.lower()
        hits = sum(1 for token in tokens if token in text)
        if hits == 0:
            continue
        score = float(hits) + SOURCE_TYPE_BOOST.get(chunk.source_type, 0.0)
        scored.append((position, ChunkMatch(chunk=chunk, score=score)))

    scored.sort(key=lambda item: (-item[1].score, item[0]))
    return [match for _, match in scored[:limit]]
