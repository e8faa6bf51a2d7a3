"""Paragraph-aware text chunker for manual text and long sources."""

import re

DEFAULT_TARGET_CHARS = 1800
MAX_CHARS = 2400

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def _split_long(text: str, max_chars: int) -> list[str]:
    """Pack sentences into pieces <= max_chars, hard-splitting on words when needed."""
    pieces: list[str] = []
    current = ""

    for sentence in _SENTENCE_END.split(text):
        if not sentence.strip():
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) <= max_chars:
            current = candidate
            continue

        if current:
            pieces.append(current.strip())

        if len(sentence) <= max_chars:
            current = sentence
            continue

        # Single sentence over the cap: fall back to word boundaries
        buffer = ""
        for word in sentence.split():
            joined = f"{buffer} {word}" if buffer else word
            if len(joined) <= max_chars:
                buffer = joined
            else:
                if buffer:
                    pieces.append(buffer.strip())
                buffer = word
        current = buffer

    if current.strip():
        pieces.append(current.strip())
    return pieces


def split_into_chunks(
    text: str,
    *,
    target_chars: int = DEFAULT_TARGET_CHARS,
    max_chars: int = MAX_CHARS,
) -> list[str]:
    """Chunk text into ordered segments.

    Pure function with no I/O or randomness.

    Args:
        text: Raw text to chunk
        target_chars: Paragraphs are merged while the chunk stays under this
        max_chars: Hard cap per chunk

    Returns:
        Non-empty chunks in document order

    Strategy:
        1. Normalize line endings and horizontal whitespace
        2. Split on blank lines to get paragraphs
        3. Merge paragraphs while under target_chars
        4. Split paragraphs over max_chars at sentence ends
        5. Hard-split single sentences over max_chars at word boundaries
    """
    normalized = re.sub(r"[ \t]+", " ", text.replace("\r\n", "\n").replace("\r", "\n")).strip()
    if not normalized:
        return []

    paragraphs = [
        p.replace("\n", " ").strip() for p in re.split(r"\n{2,}", normalized) if p.strip()
    ]

    chunks: list[str] = []
    buffer = ""

    for para in paragraphs:
        candidate = f"{buffer}\n\n{para}" if buffer else para
        if len(candidate) <= target_chars:
            buffer = candidate
            continue

        if buffer:
            chunks.append(buffer.strip())

        if len(para) > max_chars:
            pieces = _split_long(para, max_chars)
            buffer = pieces.pop() if pieces else ""
            chunks.extend(pieces)
        else:
            buffer = para

    if buffer.strip():
        chunks.append(buffer.strip())

    # Safety pass: nothing leaves over the cap
    result: list[str] = []
    for chunk in chunks:
        result.extend([chunk] if len(chunk) <= max_chars else _split_long(chunk, max_chars))
    return result
