"""Chapter/topic mapper.

Assigns every generated topic to a syllabus chapter, derives chapter
priority and time budgets, and attaches exam-likelihood summaries.
Pure and deterministic: same inputs, same chapters.
"""

import re
from collections.abc import Sequence

from backend.app.models.common import Priority
from backend.app.models.jobs import UploadedFile
from backend.app.models.strategy import (
    Chapter,
    ExamLikelihoodSummary,
    SyllabusChapterHint,
    Topic,
)
from backend.app.scoring.likelihood import BooleanSignals, score_exam_likelihood

MATERIAL_WARNING = "Material not uploaded for this chapter."
LOW_COVERAGE_THRESHOLD = 40
HIGH_PRIORITY_BLEND = 16
MEDIUM_PRIORITY_BLEND = 8
HIGH_WEIGHTAGE_THRESHOLD = 15

_WEIGHTAGE_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")

_TOPIC_PRIORITY_SCORE = {Priority.high: 3, Priority.medium: 2, Priority.low: 1}


def parse_weightage(weightage: str | None) -> float:
    """Extract the first number in a weightage string ("20%" -> 20.0, "" -> 0.0)."""
    if not weightage:
        return 0.0
    match = _WEIGHTAGE_NUMBER.search(weightage)
    if not match:
        return 0.0
    return float(match.group(1))


def topic_priority_score(priority: Priority) -> int:
    """High 3, medium 2, low 1."""
    return _TOPIC_PRIORITY_SCORE[Priority(priority)]


def title_tokens(title: str) -> list[str]:
    """Lowercased alphanumeric tokens longer than three characters."""
    return [token for token in _TOKEN_SPLIT.split(title.lower()) if len(token) > 3]


def has_token_hit(target: str, chapter_title: str) -> bool:
    """True when any significant chapter title token appears in target."""
    normalized = target.lower()
    return any(token in normalized for token in title_tokens(chapter_title))


def chapter_priority(hint: SyllabusChapterHint, topics: Sequence[Topic]) -> Priority:
    """Blend topic priorities with the hint's weightage, emphasis and coverage.

    Args:
        hint: Syllabus chapter hint
        topics: Topics assigned to the chapter

    Returns:
        high when the blend is >= 16, medium when >= 8, else low
    """
    topic_score = sum(topic_priority_score(topic.priority) for topic in topics)
    blended = (
        parse_weightage(hint.weightage) + hint.emphasis_score + hint.coverage_score + topic_score
    )
    if blended >= HIGH_PRIORITY_BLEND:
        return Priority.high
    if blended >= MEDIUM_PRIORITY_BLEND:
        return Priority.medium
    return Priority.low


def chapter_estimated_time(priority: Priority, topic_count: int) -> str:
    """Human-readable time budget for a chapter."""
    count = max(topic_count, 1)
    if priority == Priority.high:
        return f"{max(2, count)}-{max(3, count + 1)} hours"
    if priority == Priority.medium:
        return f"{max(1, count)}-{max(2, count)} hours"
    return "45-90 min"


def _assign_chapter(topic: Topic, hints: list[SyllabusChapterHint]) -> Topic:
    by_number = {hint.chapter_number: hint for hint in hints}
    if topic.chapter_number is not None and topic.chapter_number in by_number:
        return topic.model_copy(
            update={"chapter_title": by_number[topic.chapter_number].chapter_title}
        )

    topic_text = f"{topic.title} {topic.explanation}".lower()
    scored = [
        (sum(1 for token in title_tokens(hint.chapter_title) if token in topic_text), hint)
        for hint in hints
    ]
    # Highest overlap wins, ties go to the lowest chapter number.
    scored.sort(key=lambda item: (-item[0], item[1].chapter_number))
    best = scored[0][1]
    return topic.model_copy(
        update={"chapter_number": best.chapter_number, "chapter_title": best.chapter_title}
    )


def assign_chapters(
    topics: Sequence[Topic], chapter_hints: Sequence[SyllabusChapterHint]
) -> list[Topic]:
    """Give every topic a syllabus chapter, keeping input order and length."""
    hints = sorted(chapter_hints, key=lambda hint: hint.chapter_number)
    return [_assign_chapter(topic, hints) for topic in topics]


def map_to_chapters(
    topics: Sequence[Topic],
    chapter_hints: Sequence[SyllabusChapterHint],
    previous_paper_text: str,
    all_files: Sequence[UploadedFile],
) -> list[Chapter]:
    """Group topics under syllabus chapters.

    Every topic is assigned to exactly one chapter and none is dropped.
    Chapters without topics are kept only when they carry a material
    warning.

    Args:
        topics: Normalized topics in generation order
        chapter_hints: Hints extracted from the syllabus
        previous_paper_text: Concatenated previous paper text
        all_files: Every uploaded file (used for question bank detection)

    Returns:
        Chapters sorted by chapter number; empty when there are no hints
    """
    if not chapter_hints:
        return []

    hints = sorted(chapter_hints, key=lambda hint: hint.chapter_number)
    mapped = assign_chapters(topics, hints)
    has_question_bank = any("question bank" in f.name.lower() for f in all_files)

    chapters: list[Chapter] = []
    for hint in hints:
        chapter_topics = [t for t in mapped if t.chapter_number == hint.chapter_number]
        priority = chapter_priority(hint, chapter_topics)
        likelihood = score_exam_likelihood(
            BooleanSignals(
                appeared_in_previous_paper=has_token_hit(previous_paper_text, hint.chapter_title),
                appeared_in_question_bank=has_question_bank,
                repeated_in_material=hint.coverage_score >= 2,
                syllabus_core=hint.emphasis_score >= 2,
                high_weightage=parse_weightage(hint.weightage) >= HIGH_WEIGHTAGE_THRESHOLD,
            )
        )
        warning = None if hint.material_available else MATERIAL_WARNING

        if not chapter_topics and warning is None:
            continue

        chapters.append(
            Chapter(
                chapter_number=hint.chapter_number,
                chapter_title=hint.chapter_title,
                weightage=hint.weightage,
                material_coverage=hint.material_coverage_percent,
                low_material_confidence=hint.material_coverage_percent < LOW_COVERAGE_THRESHOLD,
                priority=priority,
                estimated_time=chapter_estimated_time(priority, len(chapter_topics)),
                topics=[
                    t.model_copy(
                        update={
                            "exam_likelihood_score": likelihood.score,
                            "exam_likelihood_label": likelihood.label,
                        }
                    )
                    for t in chapter_topics
                ],
                exam_likelihood_summary=ExamLikelihoodSummary(
                    high_likelihood_questions=sum(
                        1 for t in chapter_topics if t.priority == Priority.high
                    ),
                    average_likelihood=likelihood.score,
                ),
                material_warning=warning,
            )
        )

    return chapters
