"""Job stage order and progress checkpoints."""

from backend.app.errors import InvalidTransitionError
from backend.app.models.common import JobStage

STAGE_ORDER: tuple[JobStage, ...] = (
    "queued",
    "extracting_text",
    "analyzing_chapters",
    "generating_strategy",
    "preparing_study_content",
    "complete",
)

TERMINAL_STAGES: frozenset[JobStage] = frozenset({"complete", "failed"})

# Progress reported when a stage begins. `queued` uses the caller's floor.
STAGE_PROGRESS: dict[JobStage, int] = {
    "extracting_text": 45,
    "analyzing_chapters": 62,
    "generating_strategy": 78,
    "preparing_study_content": 90,
    "complete": 100,
    "failed": 100,
}


def stage_index(stage: JobStage) -> int:
    """Position in the forward order; failed sorts after every stage."""
    if stage == "failed":
        return len(STAGE_ORDER)
    return STAGE_ORDER.index(stage)


def check_transition(current: JobStage, target: JobStage) -> None:
    """Validate a stage transition.

    Allowed: staying put, moving to the next stage, or failing from any
    non-terminal stage. Stages are never skipped.

    Raises:
        InvalidTransitionError: On backward moves, skipped stages or updates
            after a terminal stage
    """
    if current in TERMINAL_STAGES:
        raise InvalidTransitionError(f"Job already {current}; cannot move to {target}")
    if target == "failed" or target == current:
        return
    if stage_index(target) < stage_index(current):
        raise InvalidTransitionError(f"Cannot move job from {current} back to {target}")
    if stage_index(target) != stage_index(current) + 1:
        raise InvalidTransitionError(f"Cannot skip from {current} to {target}")
