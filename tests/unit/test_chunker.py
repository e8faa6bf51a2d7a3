"""Unit tests for the paragraph-aware chunker."""

from backend.app.chunks.chunker import MAX_CHARS, split_into_chunks


def test_empty_text_has_no_chunks() -> None:
    assert split_into_chunks("") == []
    assert split_into_chunks(" \n\n \t") == []


def test_short_paragraphs_are_merged() -> None:
    text = "First paragraph.\n\nSecond paragraph.\n\nThird."

    assert split_into_chunks(text) == ["First paragraph.\n\nSecond paragraph.\n\nThird."]


def test_paragraphs_split_when_over_target() -> None:
    para = "word " * 50
    text = "\n\n".join([para.strip()] * 3)

    chunks = split_into_chunks(text, target_chars=300, max_chars=400)

    assert len(chunks) == 3
    assert all(len(c) <= 400 for c in chunks)


def test_long_paragraph_split_on_sentences() -> None:
    sentence = "This sentence is about forty characters. "
    text = sentence * 100

    chunks = split_into_chunks(text)

    assert len(chunks) > 1
    assert all(len(c) <= MAX_CHARS for c in chunks)
    assert all(c.endswith(".") for c in chunks)


def test_single_long_sentence_split_on_words() -> None:
    text = "token " * 1000

    chunks = split_into_chunks(text, target_chars=200, max_chars=250)

    assert all(len(c) <= 250 for c in chunks)
    assert " ".join(chunks).split() == text.split()


def test_chunker_preserves_order() -> None:
    text = "\n\n".join(f"Paragraph number {i}." for i in range(200))

    joined = " ".join(split_into_chunks(text, target_chars=120, max_chars=160))

    positions = [joined.index(f"Paragraph number {i}.") for i in range(200)]
    assert positions == sorted(positions)
