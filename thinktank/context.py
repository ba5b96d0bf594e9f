"""Per-run cancellation and correlation context."""

import threading
import time
import uuid
from dataclasses import dataclass, field

from thinktank.llm.errors import ErrorCategory, LlmError


@dataclass
class RunContext:
    """Carries cancellation state and a correlation ID through one run.

    A single instance is shared by every model processed in a run, so
    cancelling it stops all in-flight and pending work at the next
    checkpoint.

    Attributes:
        correlation_id: Identifier bound into every log line of the run.
        timeout: Optional overall time budget in seconds.
    """

    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timeout: float | None = None

    _cancel_event: threading.Event = field(
        default_factory=threading.Event, init=False, repr=False
    )
    _started: float = field(default_factory=time.monotonic, init=False, repr=False)

    def cancel(self) -> None:
        """Mark the run as cancelled."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        """True once cancelled or once the time budget is spent."""
        if self._cancel_event.is_set():
            return True
        return self.remaining() == 0.0

    def remaining(self) -> float | None:
        """Seconds left in the time budget, or None when unbounded."""
        if self.timeout is None:
            return None
        return max(0.0, self.timeout - (time.monotonic() - self._started))

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``, returning early if the run is cancelled.

        Returns:
            True if the run was cancelled while waiting.
        """
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._cancel_event.wait(max(seconds, 0.0))
        return self.cancelled

    def raise_if_cancelled(self) -> None:
        """Raise a cancellation error if the run has been cancelled.

        Raises:
            LlmError: With category ``CANCELLED``.
        """
        if not self.cancelled:
            return
        reason = "deadline exceeded" if not self._cancel_event.is_set() else "cancelled"
        msg = f"operation {reason}"
        raise LlmError(msg, category=ErrorCategory.CANCELLED)
