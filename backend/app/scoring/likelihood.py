"""Exam-likelihood scorer.

Two signal shapes are accepted, discriminated by ``kind``:

- ``boolean``: evidence flags collected while mapping chapters. Each flag
  adds a fixed bonus (previous paper 40, question bank 25, repeated in
  material 15, syllabus core 10, high weightage 10).
- ``continuous``: 0-100 intensities combined as a weighted sum
  (0.35 topic frequency, 0.30 exam history, 0.20 weak area, 0.15 syllabus
  priority).

Both are clamped to [0, 100] and labelled with the same thresholds.
"""

import math
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from backend.app.models.common import LikelihoodLabel

PREVIOUS_PAPER_BONUS = 40
QUESTION_BANK_BONUS = 25
REPEATED_IN_MATERIAL_BONUS = 15
SYLLABUS_CORE_BONUS = 10
HIGH_WEIGHTAGE_BONUS = 10

TOPIC_FREQUENCY_WEIGHT = 0.35
EXAM_HISTORY_WEIGHT = 0.30
WEAK_AREA_WEIGHT = 0.20
SYLLABUS_PRIORITY_WEIGHT = 0.15

_BOOLEAN_KEYS = {
    "appeared_in_previous_paper",
    "appeared_in_question_bank",
    "repeated_in_material",
    "syllabus_core",
    "high_weightage",
}


class BooleanSignals(BaseModel):
    """Evidence flags for a chapter or topic."""

    kind: Literal["boolean"] = "boolean"
    appeared_in_previous_paper: bool = False
    appeared_in_question_bank: bool = False
    repeated_in_material: bool = False
    syllabus_core: bool = False
    high_weightage: bool = False


class ContinuousSignals(BaseModel):
    """Graded intensities, each in [0, 100]."""

    kind: Literal["continuous"] = "continuous"
    topic_frequency: float = Field(0.0, ge=0, le=100)
    exam_history: float = Field(0.0, ge=0, le=100)
    weak_area_weight: float = Field(0.0, ge=0, le=100)
    syllabus_priority: float = Field(0.0, ge=0, le=100)


LikelihoodSignals = Annotated[BooleanSignals | ContinuousSignals, Field(discriminator="kind")]

_signals_adapter: TypeAdapter[BooleanSignals | ContinuousSignals] = TypeAdapter(LikelihoodSignals)


class LikelihoodResult(BaseModel):
    """Score with its display label."""

    score: int = Field(..., ge=0, le=100)
    label: LikelihoodLabel


def likelihood_label(score: int) -> LikelihoodLabel:
    """Map a 0-100 score onto its label."""
    if score >= 80:
        return "VERY LIKELY"
    if score >= 60:
        return "HIGH"
    if score >= 40:
        return "MEDIUM"
    return "LOW"


def _clamp(value: float) -> int:
    # Round half up so 59.5 lands on 60 regardless of banker's rounding.
    return max(0, min(100, math.floor(value + 0.5)))


def coerce_signals(
    signals: BooleanSignals | ContinuousSignals | dict[str, Any],
) -> BooleanSignals | ContinuousSignals:
    """Accept a model or a plain dict; dicts without ``kind`` are inferred from their keys."""
    if isinstance(signals, (BooleanSignals, ContinuousSignals)):
        return signals
    payload = dict(signals)
    if "kind" not in payload:
        payload["kind"] = "boolean" if _BOOLEAN_KEYS & payload.keys() else "continuous"
    return _signals_adapter.validate_python(payload)


def score_exam_likelihood(
    signals: BooleanSignals | ContinuousSignals | dict[str, Any],
) -> LikelihoodResult:
    """Score exam likelihood from either signal shape.

    Args:
        signals: Boolean flags, continuous intensities, or an equivalent dict

    Returns:
        LikelihoodResult with a clamped integer score and label
    """
    parsed = coerce_signals(signals)

    if isinstance(parsed, BooleanSignals):
        raw = 0.0
        if parsed.appeared_in_previous_paper:
            raw += PREVIOUS_PAPER_BONUS
        if parsed.appeared_in_question_bank:
            raw += QUESTION_BANK_BONUS
        if parsed.repeated_in_material:
            raw += REPEATED_IN_MATERIAL_BONUS
        if parsed.syllabus_core:
            raw += SYLLABUS_CORE_BONUS
        if parsed.high_weightage:
            raw += HIGH_WEIGHTAGE_BONUS
    else:
        raw = (
            parsed.topic_frequency * TOPIC_FREQUENCY_WEIGHT
            + parsed.exam_history * EXAM_HISTORY_WEIGHT
            + parsed.weak_area_weight * WEAK_AREA_WEIGHT
            + parsed.syllabus_priority * SYLLABUS_PRIORITY_WEIGHT
        )

    score = _clamp(raw)
    return LikelihoodResult(score=score, label=likelihood_label(score))
