"""Normalize a generated strategy draft into canonical Topic/Chapter shape.

Generators return loosely structured JSON: keys may be camelCase or
snake_case, topics may be missing, and older drafts only carry priority
lists. Everything here is tolerant and deterministic.
"""

import json
import re
from typing import Any

from backend.app.errors import ParsingError
from backend.app.models.common import Confidence, Priority
from backend.app.models.strategy import Chapter, Strategy, StrategySummary, Topic
from backend.app.orchestration.mapper import (
    chapter_estimated_time,
    parse_weightage,
    topic_priority_score,
)

DEFAULT_EXPLANATION = "Generated from your uploaded material."
DEFAULT_COVERAGE = "70%"
FALLBACK_CHAPTER_TITLE = "General Revision"
SHORT_BUDGET_HOURS = 6

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_CHAPTER_TOPIC = re.compile(
    r"^(?:chapter|unit)\s*(\d+)\s*[:\-\u2013\u2014.]?\s*([^:\u2013\u2014-]+?)(?:\s*[:\-\u2013\u2014.]\s*(.+))?$",
    re.IGNORECASE,
)

_TOPIC_TIME = {
    Priority.high: "90-120 min",
    Priority.medium: "60-90 min",
    Priority.low: "30-45 min",
}


def slugify(text: str) -> str:
    """URL-safe slug; "topic" when nothing survives."""
    base = re.sub(r"[^a-z0-9\s-]", "", text.lower().strip())
    base = re.sub(r"\s+", "-", base)
    base = re.sub(r"-+", "-", base)
    return base or "topic"


def topic_estimated_time(priority: Priority, hours_left: float | None = None) -> str:
    """Default time for one topic; short budgets cap every topic at 30-45 min."""
    if hours_left is not None and hours_left <= SHORT_BUDGET_HOURS:
        return "30-45 min"
    return _TOPIC_TIME[priority]


def parse_chapter_topic_title(text: str) -> tuple[int, str, str] | None:
    """Split "Chapter 3: Thermodynamics - Entropy" into (3, "Thermodynamics", "Entropy")."""
    normalized = re.sub(r"\s+", " ", text).strip()
    match = _CHAPTER_TOPIC.match(normalized)
    if not match:
        return None
    number = int(match.group(1))
    chapter_title = (match.group(2) or "").strip() or f"Chapter {number}"
    topic_title = (match.group(3) or chapter_title).strip()
    return number, chapter_title, topic_title


def extract_json_object(raw: str) -> dict[str, Any]:
    """Parse the JSON object in a model response, ignoring fences and surrounding prose.

    Raises:
        ParsingError: If no JSON object can be decoded
    """
    cleaned = _FENCE.sub("", raw).strip()
    candidates = [cleaned]
    match = _JSON_OBJECT.search(cleaned)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ParsingError("Model response did not contain a valid JSON strategy")


def _get(data: dict[str, Any], snake: str, camel: str) -> Any:
    return data[snake] if snake in data else data.get(camel)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if str(item).strip()]


def _text(value: Any, fallback: str) -> str:
    return value if isinstance(value, str) and value.strip() else fallback


def _priority(value: Any, fallback: Priority = Priority.medium) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        return fallback


def _confidence(value: Any, priority: Priority) -> Confidence:
    try:
        return Confidence(value)
    except ValueError:
        return Confidence(priority.value)


def _default_topic(
    title: str,
    priority: Priority,
    hours_left: float,
    index: int,
    chapter: tuple[int, str] | None = None,
) -> Topic:
    return Topic(
        slug=f"{slugify(title)}-{index + 1}",
        title=title,
        priority=priority,
        estimated_time=topic_estimated_time(priority, hours_left),
        what_to_learn=[
            f"{title} basics and definitions",
            f"{title} most frequently tested patterns",
            f"{title} exam-style problem approach",
        ],
        explanation=DEFAULT_EXPLANATION,
        key_exam_points=[
            f"Understand the core concept of {title}",
            f"Prioritize high-frequency question patterns for {title}",
        ],
        confidence=Confidence(priority.value),
        chapter_number=chapter[0] if chapter else None,
        chapter_title=chapter[1] if chapter else None,
    )


def topics_from_priority_lists(
    high: list[str], medium: list[str], low: list[str], hours_left: float
) -> list[Topic]:
    """Build default topics from bare priority lists, deduplicated case-insensitively."""
    seen: set[str] = set()
    ordered: list[tuple[str, Priority]] = []
    for titles, priority in ((high, Priority.high), (medium, Priority.medium), (low, Priority.low)):
        for title in titles:
            key = title.lower()
            if key in seen:
                continue
            seen.add(key)
            ordered.append((title, priority))

    topics: list[Topic] = []
    for index, (title, priority) in enumerate(ordered):
        parsed = parse_chapter_topic_title(title)
        if parsed is None:
            topics.append(_default_topic(title, priority, hours_left, index))
            continue
        number, chapter_title, topic_title = parsed
        topic = _default_topic(topic_title, priority, hours_left, index, (number, chapter_title))
        topics.append(
            topic.model_copy(update={"slug": f"{slugify(topic_title)}-{number}-{index + 1}"})
        )
    return topics


def _normalize_topic(item: dict[str, Any], index: int, hours_left: float) -> Topic | None:
    raw_title = item.get("title")
    if not isinstance(raw_title, str) or not raw_title.strip():
        return None
    title = raw_title.strip()
    parsed = parse_chapter_topic_title(title)
    priority = _priority(item.get("priority"))

    chapter_number = _get(item, "chapter_number", "chapterNumber")
    if not isinstance(chapter_number, int):
        chapter_number = parsed[0] if parsed else None
    chapter_title = _get(item, "chapter_title", "chapterTitle")
    if not isinstance(chapter_title, str) or not chapter_title.strip():
        chapter_title = parsed[1] if parsed else None
    topic_title = parsed[2] if parsed else title

    slug = item.get("slug")
    return Topic(
        slug=slug if isinstance(slug, str) and slug.strip() else f"{slugify(topic_title)}-{index + 1}",
        title=topic_title,
        priority=priority,
        estimated_time=_text(
            _get(item, "estimated_time", "estimatedTime"),
            topic_estimated_time(priority, hours_left),
        ),
        what_to_learn=_str_list(_get(item, "what_to_learn", "whatToLearn")),
        explanation=_text(item.get("explanation"), DEFAULT_EXPLANATION),
        key_exam_points=_str_list(_get(item, "key_exam_points", "keyExamPoints")),
        confidence=_confidence(item.get("confidence"), priority),
        chapter_number=chapter_number,
        chapter_title=chapter_title.strip() if isinstance(chapter_title, str) else None,
    )


def normalize_topics(value: Any, fallback: list[Topic], hours_left: float) -> list[Topic]:
    """Normalize draft topics; fall back when none are usable."""
    if not isinstance(value, list):
        return fallback
    topics: list[Topic] = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            continue
        topic = _normalize_topic(item, index, hours_left)
        if topic is not None:
            topics.append(topic)
    return _dedupe_slugs(topics) if topics else fallback


def _dedupe_slugs(topics: list[Topic]) -> list[Topic]:
    seen: set[str] = set()
    unique: list[Topic] = []
    for topic in topics:
        slug = topic.slug
        suffix = 1
        while slug in seen:
            suffix += 1
            slug = f"{topic.slug}-{suffix}"
        seen.add(slug)
        unique.append(topic if slug == topic.slug else topic.model_copy(update={"slug": slug}))
    return unique


def fallback_chapter_priority(topics: list[Topic], weightage: str | None = None) -> Priority:
    """Composite of topic scores and weightage; >= 18 high, >= 9 medium."""
    composite = parse_weightage(weightage) + sum(topic_priority_score(t.priority) for t in topics)
    if composite >= 18:
        return Priority.high
    if composite >= 9:
        return Priority.medium
    return Priority.low


def build_fallback_chapters(topics: list[Topic]) -> list[Chapter]:
    """Group topics by their chapter number (default chapter 1, "General Revision")."""
    grouped: dict[int, tuple[str, list[Topic]]] = {}
    for topic in topics:
        number = topic.chapter_number if topic.chapter_number is not None else 1
        title = topic.chapter_title or FALLBACK_CHAPTER_TITLE
        if number not in grouped:
            grouped[number] = (title, [])
        grouped[number][1].append(topic)

    chapters = []
    for number in sorted(grouped):
        title, chapter_topics = grouped[number]
        priority = fallback_chapter_priority(chapter_topics)
        chapters.append(
            Chapter(
                chapter_number=number,
                chapter_title=title,
                priority=priority,
                estimated_time=chapter_estimated_time(priority, len(chapter_topics)),
                topics=chapter_topics,
            )
        )
    return chapters


def normalize_strategy(draft: dict[str, Any], hours_left: float, model_label: str) -> Strategy:
    """Normalize a parsed draft into a Strategy.

    Drafts without a strategy summary are treated as the legacy shape that
    only carries priority lists and an estimated coverage.

    Args:
        draft: Parsed JSON object from the generator
        hours_left: Hours the student has left
        model_label: Label used when the draft does not name its model

    Returns:
        Strategy with topics and fallback chapters populated
    """
    high = _str_list(_get(draft, "high_priority", "highPriority"))
    medium = _str_list(_get(draft, "medium_priority", "mediumPriority"))
    low = _str_list(_get(draft, "low_priority", "lowPriority"))
    study_order = _str_list(_get(draft, "study_order", "studyOrder"))
    fallback_topics = topics_from_priority_lists(high, medium, low, hours_left)

    summary = _get(draft, "strategy_summary", "strategySummary")
    if not isinstance(summary, dict):
        coverage = _text(_get(draft, "estimated_coverage", "estimatedCoverage"), DEFAULT_COVERAGE)
        return Strategy(
            strategy_summary=StrategySummary(
                hours_left=hours_left,
                estimated_coverage=coverage,
                high_impact_topics=len(high),
            ),
            high_priority=high,
            medium_priority=medium,
            low_priority=low,
            study_order=study_order,
            reasoning=[
                "Appears in previous papers",
                "Core syllabus concept",
                "High marks potential",
            ],
            model_used=model_label,
            efficiency_score=coverage,
            topics=fallback_topics,
            chapters=build_fallback_chapters(fallback_topics),
        )

    topics = normalize_topics(draft.get("topics"), fallback_topics, hours_left)
    coverage = _text(_get(summary, "estimated_coverage", "estimatedCoverage"), DEFAULT_COVERAGE)
    summary_hours = _get(summary, "hours_left", "hoursLeft")
    impact = _get(summary, "high_impact_topics", "highImpactTopics")
    reasoning = draft.get("reasoning")

    return Strategy(
        strategy_summary=StrategySummary(
            hours_left=summary_hours if isinstance(summary_hours, (int, float)) else hours_left,
            estimated_coverage=coverage,
            high_impact_topics=impact if isinstance(impact, int) else len(high),
        ),
        high_priority=high,
        medium_priority=medium,
        low_priority=low,
        study_order=study_order,
        reasoning=[reasoning] if isinstance(reasoning, str) else _str_list(reasoning),
        model_used=_text(_get(draft, "model_used", "modelUsed"), model_label),
        efficiency_score=_text(_get(draft, "efficiency_score", "efficiencyScore"), coverage),
        topics=topics,
        chapters=build_fallback_chapters(topics),
    )
