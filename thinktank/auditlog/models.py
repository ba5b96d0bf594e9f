"""Audit log record types."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import Field

from thinktank.data_model import StrictBaseModel


class AuditStatus(str, Enum):
    """Outcome recorded by an audit entry."""

    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILURE = "Failure"


class ErrorInfo(StrictBaseModel):
    """Failure description attached to an audit entry.

    Attributes:
        message: Human-readable error text.
        type: Audit error type, e.g. ``RateLimitError``.
    """

    message: str
    type: str


class AuditEntry(StrictBaseModel):
    """One append-only audit record describing a phase of an operation."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    operation: str
    status: AuditStatus
    duration_ms: int | None = None
    inputs: dict[str, Any] = Field(default_factory=dict)
    outputs: dict[str, Any] = Field(default_factory=dict)
    error: ErrorInfo | None = None
    message: str = ""
