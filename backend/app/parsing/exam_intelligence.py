"""Exam intelligence: syllabus chapter detection and repeated-topic counting."""

import re
from collections import Counter

from backend.app.models.documents import RepeatedTopic
from backend.app.models.strategy import SyllabusChapterHint

STOP_WORDS = frozenset(
    {
        "the",
        "and",
        "with",
        "that",
        "from",
        "this",
        "for",
        "your",
        "have",
        "will",
        "into",
        "are",
        "you",
        "exam",
        "question",
        "questions",
        "marks",
        "unit",
        "topic",
        "chapter",
    }
)

MAX_REPEATED_TOPICS = 12
MAX_TOKEN_OCCURRENCES = 6
MAX_EMPHASIS = 8
COVERAGE_PERCENT_PER_POINT = 12

_CHAPTER_LINE = re.compile(
    r"^(?:chapter|unit)\s*(\d+)\s*[:\-\u2013\u2014.]?\s*([^()\-\u2013\u2014]+?)"
    r"(?:\s*[\-\u2013\u2014:]\s*(\d+(?:\.\d+)?\s*(?:%|marks?)))?"
    r"(?:\s*\(([^)]+)\))?$",
    re.IGNORECASE,
)
_WEIGHTAGE = re.compile(r"(\d+(?:\.\d+)?\s*(?:%|marks?))", re.IGNORECASE)
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def detect_repeated_topics(text: str) -> list[RepeatedTopic]:
    """Words of 4+ letters seen at least twice, most frequent first (top 12)."""
    words = re.sub(r"[^a-z0-9\s]", " ", text.lower()).split()
    counts = Counter(word for word in words if len(word) >= 4 and word not in STOP_WORDS)
    # Counter.most_common keeps first-seen order for equal counts.
    return [
        RepeatedTopic(topic=word, frequency=frequency)
        for word, frequency in counts.most_common()
        if frequency >= 2
    ][:MAX_REPEATED_TOPICS]


def _extract_weightage(text: str) -> str | None:
    match = _WEIGHTAGE.search(text)
    if not match:
        return None
    return re.sub(r"\s+", " ", match.group(1)).strip()


def coverage_score(material_text: str, chapter_title: str) -> int:
    """Sum over title tokens of their occurrences in the material, each capped at 6."""
    material = material_text.lower()
    tokens = [t for t in _TOKEN_SPLIT.split(chapter_title.lower()) if len(t) > 3]
    return sum(min(material.count(token), MAX_TOKEN_OCCURRENCES) for token in tokens)


def coverage_percent(score: int) -> int:
    """Map a coverage score onto 0-100."""
    return max(0, round(min(100, score * COVERAGE_PERCENT_PER_POINT)))


def emphasis_score(syllabus_text: str, chapter_title: str) -> int:
    """How often the full chapter title appears in the syllabus, capped at 8."""
    title = chapter_title.lower()
    if not title:
        return 0
    return min(syllabus_text.lower().count(title), MAX_EMPHASIS)


def extract_chapter_hints(syllabus_text: str, material_text: str) -> list[SyllabusChapterHint]:
    """Detect "Chapter N: Title - 20%" style lines in a syllabus.

    Args:
        syllabus_text: Syllabus text with line structure preserved
        material_text: Study material text used to estimate coverage

    Returns:
        Hints sorted by chapter number, one per chapter number
    """
    normalized = syllabus_text.replace("\r", "").replace("\t", " ").replace("\u00a0", " ")
    lines = [line.strip() for line in normalized.split("\n") if line.strip()]

    hints: list[SyllabusChapterHint] = []
    seen: set[int] = set()

    for line in lines:
        match = _CHAPTER_LINE.match(line)
        if not match:
            continue

        number = int(match.group(1))
        if number <= 0:
            continue
        title = re.sub(r"\s+", " ", match.group(2) or "").strip() or f"Chapter {number}"
        # Chapter numbers are unique per syllabus; the first line wins.
        if number in seen:
            continue
        seen.add(number)

        inline = match.group(3).strip() if match.group(3) else None
        weightage = inline or _extract_weightage(match.group(4) or "") or _extract_weightage(line)
        score = coverage_score(material_text, title)

        hints.append(
            SyllabusChapterHint(
                chapter_number=number,
                chapter_title=title,
                weightage=weightage,
                emphasis_score=emphasis_score(normalized, title),
                coverage_score=score,
                material_coverage_percent=coverage_percent(score),
                material_available=score > 0,
            )
        )

    hints.sort(key=lambda hint: hint.chapter_number)
    return hints
