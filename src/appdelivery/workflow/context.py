"""Workflow context handoff payload attached to step target objects."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from appdelivery.core.errors import MalformedInputError
from appdelivery.core.labels import ANNOTATION_WORKFLOW_CONTEXT
from appdelivery.core.naming import canonical_json
from appdelivery.core.objects import get_annotations


@dataclass(frozen=True)
class WorkflowContext:
    """Lets a step controller correlate its object back to the application step."""

    application_name: str
    application_revision_name: str
    workflow_index: int

    def to_annotation(self) -> str:
        return canonical_json(
            {
                "applicationName": self.application_name,
                "applicationRevisionName": self.application_revision_name,
                "workflowIndex": self.workflow_index,
            }
        )

    @classmethod
    def from_annotation(cls, value: str) -> WorkflowContext:
        try:
            data = json.loads(value)
            return cls(
                application_name=data["applicationName"],
                application_revision_name=data["applicationRevisionName"],
                workflow_index=int(data["workflowIndex"]),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise MalformedInputError(f"invalid workflow context {value!r}", cause=e) from e

    @classmethod
    def of(cls, obj: dict[str, Any]) -> WorkflowContext | None:
        """Context of a step target object, or None if it carries none."""
        value = get_annotations(obj).get(ANNOTATION_WORKFLOW_CONTEXT)
        return cls.from_annotation(value) if value is not None else None


__all__ = ["WorkflowContext"]
