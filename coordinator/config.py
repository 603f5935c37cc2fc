import os
import random
from dataclasses import dataclass, field


def _int_env(name: str, default: int) -> int:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return int(raw)
    except Exception:
        return default


def _float_env(name: str, default: float) -> float:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return float(raw)
    except Exception:
        return default


def _str_env(name: str, default: str) -> str:
    raw = str(os.getenv(name, default)).strip()
    return raw or default


DEFAULT_FINALIZER_TOKEN = "storage.coordinator.io/volume-protection"
DEFAULT_DATABASE_URL = "sqlite:///./coordinator/data/store.db"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff and jitter.

    A fixed delay is the special case multiplier=1.0, jitter=0.0.
    """

    attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: float = 0.1

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError(f"retry attempts must be >= 1, got {self.attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")
        if not 0 <= self.jitter < 1:
            raise ValueError(f"retry jitter must be in [0, 1), got {self.jitter}")

    def delay(self, attempt: int, rng: random.Random = None) -> float:
        """Delay to wait after the given zero-based failed attempt."""
        raw = min(self.max_delay, self.base_delay * (self.multiplier ** attempt))
        if self.jitter and raw:
            rng = rng or random
            raw *= 1 + rng.uniform(-self.jitter, self.jitter)
        return max(0.0, raw)

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            attempts=_int_env("COORDINATOR_API_ATTEMPTS", 3),
            base_delay=_float_env("COORDINATOR_API_BASE_DELAY", 1.0),
            max_delay=_float_env("COORDINATOR_API_MAX_DELAY", 10.0),
            multiplier=_float_env("COORDINATOR_API_BACKOFF", 2.0),
            jitter=_float_env("COORDINATOR_API_JITTER", 0.1),
        )


@dataclass(frozen=True)
class PollPolicy:
    """Convergence polling cadence."""

    interval: float = 0.5
    log_every: int = 10

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError(f"poll interval must not be negative, got {self.interval}")
        if self.log_every < 1:
            raise ValueError(f"poll log cadence must be >= 1, got {self.log_every}")

    @classmethod
    def from_env(cls) -> "PollPolicy":
        return cls(
            interval=_float_env("COORDINATOR_POLL_INTERVAL", 0.5),
            log_every=_int_env("COORDINATOR_POLL_LOG_EVERY", 10),
        )


@dataclass(frozen=True)
class CoordinatorConfig:
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    poll: PollPolicy = field(default_factory=PollPolicy)
    finalizer_token: str = DEFAULT_FINALIZER_TOKEN
    size_tolerance: str = "32Mi"
    database_url: str = DEFAULT_DATABASE_URL

    @classmethod
    def from_env(cls) -> "CoordinatorConfig":
        return cls(
            retry=RetryPolicy.from_env(),
            poll=PollPolicy.from_env(),
            finalizer_token=_str_env("COORDINATOR_FINALIZER", DEFAULT_FINALIZER_TOKEN),
            size_tolerance=_str_env("COORDINATOR_SIZE_TOLERANCE", "32Mi"),
            database_url=_str_env("COORDINATOR_DATABASE_URL", DEFAULT_DATABASE_URL),
        )
