"""Unit tests for keyword retrieval over chunk bundles."""

from backend.app.chunks.retriever import query_tokens, search_chunks
from backend.app.models.sources import ChunkBundle, IndexedChunk


def _chunk(source_id: str, text: str, source_type: str = "Study Material") -> IndexedChunk:
    return IndexedChunk(
        source_id=source_id, text=text, source_type=source_type, source_name=source_id
    )


def _bundle(*chunks: IndexedChunk, enabled: list[str] | None = None) -> ChunkBundle:
    ids = enabled if enabled is not None else sorted({c.source_id for c in chunks})
    return ChunkBundle(enabled_source_ids=ids, chunks=list(chunks))


def test_query_tokens_filters_short_and_stop_words() -> None:
    assert query_tokens("What is the Entropy of an ideal gas?") == ["entropy", "ideal", "gas"]


def test_empty_query_returns_nothing() -> None:
    assert search_chunks(_bundle(_chunk("a", "entropy")), "is it?") == []


def test_source_type_boost_ranks_previous_papers_first() -> None:
    bundle = _bundle(
        _chunk("notes", "entropy and enthalpy", "Study Material"),
        _chunk("syllabus", "entropy and enthalpy", "Syllabus Derived"),
        _chunk("paper", "entropy question", "Previous Paper"),
        _chunk("bank", "entropy drill", "Question Bank"),
    )

    matches = search_chunks(bundle, "entropy enthalpy")

    assert [m.chunk.source_id for m in matches] == ["paper", "notes", "bank", "syllabus"]
    assert [m.score for m in matches] == [4.0, 3.0, 3.0, 2.0]


def test_ties_keep_bundle_order_and_limit_applies() -> None:
    bundle = _bundle(*[_chunk(f"s{i}", "optics lens") for i in range(5)])

    matches = search_chunks(bundle, "lens", limit=3)

    assert [m.chunk.source_id for m in matches] == ["s0", "s1", "s2"]


def test_chunks_of_disabled_sources_are_ignored() -> None:
    bundle = _bundle(_chunk("on", "optics"), _chunk("off", "optics"), enabled=["on"])

    assert [m.chunk.source_id for m in search_chunks(bundle, "optics")] == ["on"]


def test_non_matching_chunks_dropped() -> None:
    assert search_chunks(_bundle(_chunk("a", "waves")), "entropy") == []
