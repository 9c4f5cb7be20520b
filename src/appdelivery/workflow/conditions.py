"""Condition Evaluator - classifies a step target's progress.

Manifesto:
    Step controllers report progress through one status condition on the
    object they were handed. The engine never inspects anything else, so the
    whole contract between the two fits in a single function: read the
    ``workflow-finish`` condition and say whether the step is pending,
    succeeded, failed or stopped.

ARCHITECTURE
────────────
::

    target.status.conditions[type=workflow-finish]
      ├── absent / status != true            → PENDING
      ├── reason=Succeeded, generation match → SUCCEEDED
      ├── reason=Succeeded, mismatch / bad   → PENDING (stale)
      ├── reason=Failed                      → FAILED (message kept)
      └── reason=Stopped                     → STOPPED

A ``Succeeded`` condition must carry ``{"observedGeneration": N}`` as JSON in
its message; ``N`` must equal the generation the engine saw when it last
applied the target. Anything else is a signal about an older input.

Example::

    reading = evaluate(target, applied_generation=2)
    if reading.outcome is StepOutcome.SUCCEEDED:
        ...
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from appdelivery.core.labels import CONDITION_WORKFLOW_FINISH
from appdelivery.core.logging import get_logger
from appdelivery.core.objects import get_condition, get_name

logger = get_logger(__name__)

class ConditionReason(str, Enum):
    """Reasons a step controller may report on ``workflow-finish``."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    STOPPED = "Stopped"


class StepOutcome(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ConditionReading:
    """What the target's terminal condition says about the step."""

    outcome: StepOutcome
    message: str = ""
    observed_generation: int | None = None
    stale: bool = False

    @classmethod
    def pending(
        cls, message: str = "", *, stale: bool = False, observed_generation: int | None = None
    ) -> ConditionReading:
        return cls(StepOutcome.PENDING, message, observed_generation, stale)


def _is_true(status: Any) -> bool:
    return status is True or (isinstance(status, str) and status.lower() == "true")


def parse_observed_generation(message: str) -> int | None:
    """``observedGeneration`` from a condition message, or None when absent/invalid."""
    try:
        payload = json.loads(message)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(payload, dict):
        return None
    value = payload.get("observedGeneration")
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    try:
        return int(value)
    except ValueError:
        return None


def evaluate(target: dict[str, Any], applied_generation: int) -> ConditionReading:
    """Classify ``target``'s progress against the generation it was applied at."""
    condition = get_condition(target, CONDITION_WORKFLOW_FINISH)
    if condition is None or not _is_true(condition.get("status")):
        return ConditionReading.pending()

    reason = condition.get("reason", "")
    message = condition.get("message", "") or ""
    match reason:
        case ConditionReason.SUCCEEDED:
            observed = parse_observed_generation(message)
            if observed is None:
                logger.warning(
                    "condition.missing_observed_generation",
                    target=get_name(target),
                    message=message,
                )
                return ConditionReading.pending(message, stale=True)
            if observed != applied_generation:
                logger.debug(
                    "condition.stale",
                    target=get_name(target),
                    observed=observed,
                    applied=applied_generation,
                )
                return ConditionReading.pending(message, stale=True, observed_generation=observed)
            return ConditionReading(StepOutcome.SUCCEEDED, message, observed)
        case ConditionReason.FAILED:
            return ConditionReading(StepOutcome.FAILED, message)
        case ConditionReason.STOPPED:
            return ConditionReading(StepOutcome.STOPPED, message)
        case _:
            logger.warning("condition.unknown_reason", target=get_name(target), reason=reason)
            return ConditionReading.pending(message)


__all__ = [
    "ConditionReason",
    "StepOutcome",
    "ConditionReading",
    "parse_observed_generation",
    "evaluate",
]
