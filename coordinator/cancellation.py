import threading
import time
from typing import Optional

from coordinator.errors import Canceled, ConvergenceError, ConvergenceTimeout


class CancelToken:
    """
    Cancellation signal with an optional deadline.

    Usage:
        token = CancelToken.with_timeout(30)
        ...
        if token.wait(0.5):   # sleeps, returns early once canceled or expired
            return
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        Args:
            deadline: time.monotonic() value after which the token counts as expired
        """
        self._event = threading.Event()
        self._deadline = deadline
        self._reason: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def has_deadline(self) -> bool:
        return self._deadline is not None

    def cancel(self, reason: str = "canceled by caller"):
        self._reason = reason
        self._event.set()

    @property
    def canceled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def done(self) -> bool:
        return self.canceled or self.expired

    @property
    def reason(self) -> Optional[str]:
        if self.canceled:
            return self._reason
        if self.expired:
            return "deadline exceeded"
        return None

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, capped by the deadline. Returns True if the token is done."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        if seconds > 0:
            self._event.wait(seconds)
        return self.done

    def stopped_error(self, name: str, attempts: int) -> ConvergenceError:
        """Canceled after an explicit cancel, ConvergenceTimeout once the deadline passed."""
        if self.canceled:
            return Canceled(name, attempts, self.reason)
        return ConvergenceTimeout(name, attempts, self.reason or "deadline exceeded")
