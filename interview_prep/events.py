"""Progress event models emitted by the pipeline controller."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PipelineEventType(str, Enum):
    """Pipeline event types."""

    STEP_STATUS = "step_status"
    VALIDATION = "validation"
    COMPLETE = "complete"
    PAUSED = "paused"
    ERROR = "error"


class PipelineEvent(BaseModel):
    """Base pipeline event model."""

    event: PipelineEventType = Field(description="Event type identifier")
    data: dict[str, Any] = Field(description="Event payload data")

    def format(self) -> str:
        """One-line human rendering: 'event key=value ...'."""
        fields = " ".join(f"{key}={value}" for key, value in self.data.items())
        return f"{self.event.value} {fields}".rstrip()


class StepStatusEvent(PipelineEvent):
    """Event emitted whenever an analysis step changes status."""

    event: PipelineEventType = PipelineEventType.STEP_STATUS
    data: dict[str, str] = Field(
        description="Step identifier, label and new status",
        examples=[{"step": "research", "label": "Parallel Research", "status": "loading"}],
    )


class ValidationEvent(PipelineEvent):
    """Event emitted when input validation blocks or suspends a run."""

    event: PipelineEventType = PipelineEventType.VALIDATION
    data: dict[str, Any] = Field(
        description="Validation verdict in wire form",
        examples=[{"isValid": True, "isTypo": True, "correctedUniversity": "한국대학교"}],
    )


class CompleteEvent(PipelineEvent):
    """Event emitted when a run assembles its final report."""

    event: PipelineEventType = PipelineEventType.COMPLETE
    data: dict[str, Any] = Field(
        description="Run summary",
        examples=[{"university": "한국대학교", "department": "컴퓨터공학과", "total_ms": 61000}],
    )


class PausedEvent(PipelineEvent):
    """Event emitted when a run is stopped by the user."""

    event: PipelineEventType = PipelineEventType.PAUSED
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Whether a research snapshot is available for resume",
        examples=[{"resumable": True}],
    )


class ErrorEvent(PipelineEvent):
    """Event emitted when a run fails for a reason other than cancellation."""

    event: PipelineEventType = PipelineEventType.ERROR
    data: dict[str, str] = Field(
        description="Error details",
        examples=[{"error": "분석 중 오류가 발생했습니다.", "error_type": "BackendError"}],
    )
