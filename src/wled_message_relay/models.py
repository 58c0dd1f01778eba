"""Pydantic models for rotation state and ingress payloads."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class SubmitResult(StrEnum):
    """Outcome of submitting a message."""

    QUEUED = "queued"
    SWITCHED = "switched"


class QueuedMessage(BaseModel):
    """A message waiting in the rotation queue."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Process-lifetime unique message id")
    text: str = Field(min_length=1, description="Trimmed message text")
    color: str | None = Field(default=None, description="Requested colour as #rrggbb")
    enqueued_at: float = Field(description="Scheduler clock reading at enqueue")


class CurrentDisplay(BaseModel):
    """The message currently shown on the device.

    Replaced rather than mutated when the rotation advances.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Id carried over from the submitted message")
    text: str = Field(min_length=1, description="Message text")
    color: str | None = Field(default=None, description="Requested colour as #rrggbb")
    started_at: float = Field(description="Scheduler clock reading when the message went live")


class MessageView(BaseModel):
    """Reporting projection of a queued or current message."""

    id: int
    text: str
    color: str | None = None


class QueueSnapshot(BaseModel):
    """Read-only view of the rotation state.

    Returned by: GET /api/queue
    """

    current: MessageView | None = Field(default=None, description="Message currently shown")
    elapsed_seconds: int = Field(default=0, ge=0, description="Whole seconds the current message has been shown")
    items: list[MessageView] = Field(default_factory=list, description="Pending messages in FIFO order")
