"""Prompt builders for strategy generation and study answers."""

from collections.abc import Sequence

from backend.app.models.documents import RepeatedTopic
from backend.app.models.sources import IndexedChunk
from backend.app.models.strategy import SyllabusChapterHint

STRATEGY_KEYS = [
    "strategySummary: { hoursLeft: number, estimatedCoverage: string, highImpactTopics: number }",
    "chapters: Array<{ chapterNumber: number, chapterTitle: string, weightage?: string, "
    "priority: 'high' | 'medium' | 'low', estimatedTime: string, topics: Topic[] }>",
    "highPriority: string[]",
    "mediumPriority: string[]",
    "lowPriority: string[]",
    "studyOrder: string[]",
    "reasoning: string[]",
    "topics: Array<{ slug: string, title: string, priority: 'high' | 'medium' | 'low', "
    "estimatedTime: string, whatToLearn: string[], explanation: string, "
    "keyExamPoints: string[], confidence: 'high' | 'medium' | 'low', "
    "chapterNumber: number, chapterTitle: string }>",
    "modelUsed: string",
    "efficiencyScore: string",
]

MAX_CONTEXT_CHARS = 600


def format_chapter_hint(hint: SyllabusChapterHint) -> str:
    """One prompt line per detected chapter."""
    weightage = f", weightage: {hint.weightage}" if hint.weightage else ""
    return (
        f"Chapter {hint.chapter_number}: {hint.chapter_title}{weightage}, "
        f"emphasisScore: {hint.emphasis_score}, coverageScore: {hint.coverage_score}"
    )


def build_strategy_prompt(
    *,
    hours_left: float,
    syllabus_text: str,
    material_text: str,
    previous_paper_text: str,
    chapter_hints: Sequence[SyllabusChapterHint],
    repeated_topics: Sequence[RepeatedTopic],
    warnings: Sequence[str],
) -> str:
    """Build the strategy generation prompt.

    Args:
        hours_left: Hours before the exam
        syllabus_text: Merged syllabus text
        material_text: Study material text
        previous_paper_text: Previous paper text
        chapter_hints: Chapters detected in the syllabus
        repeated_topics: Frequent words from previous papers
        warnings: Parser warnings

    Returns:
        Prompt asking for a single JSON object
    """
    hints_text = (
        "\n".join(format_chapter_hint(hint) for hint in chapter_hints)
        if chapter_hints
        else "No explicit chapter headings detected. Infer chapter structure from syllabus text."
    )
    repeated_text = (
        ", ".join(f"{t.topic} ({t.frequency})" for t in repeated_topics)
        if repeated_topics
        else "No repeated topics detected from previous papers."
    )

    lines = [
        "Create an exam study strategy and return ONLY valid JSON with these exact keys:",
        *STRATEGY_KEYS,
        "",
        f"Hours left before exam: {hours_left:g}",
        f"Syllabus extracted text:\n{syllabus_text or 'Not provided'}",
        f"Study material extracted text:\n{material_text or 'Not provided'}",
        f"Previous paper extracted text:\n{previous_paper_text or 'Not provided'}",
        f"Detected chapter hints:\n{hints_text}",
        f"Repeated topics from previous papers: {repeated_text}",
        f"Parser warnings: {' | '.join(warnings) or 'None'}",
        "Priority logic MUST consider chapter weightage (if available), syllabus emphasis, "
        "material coverage, and exam time available.",
        "Map every topic to a chapter using chapterNumber + chapterTitle.",
        "The strategy should read like revision notes: concise, exam-focused, "
        "no raw extracted text.",
    ]
    return "\n".join(lines)


def build_study_prompt(question: str, context: Sequence[IndexedChunk]) -> str:
    """Build a grounded study answer prompt from retrieved chunks."""
    lines = [
        "Answer the student's question using the study sources below.",
        "Prefer facts from the sources; say so when the sources do not cover it.",
        "",
        "## Sources",
    ]
    if context:
        for chunk in context:
            preview = chunk.text
            if len(preview) > MAX_CONTEXT_CHARS:
                preview = preview[: MAX_CONTEXT_CHARS - 3] + "..."
            lines.append(f"- [{chunk.source_type}] {chunk.source_name} ({chunk.section}): {preview}")
    else:
        lines.append("- No matching sources")
    lines.extend(["", "## Question", question.strip()])
    return "\n".join(lines)
