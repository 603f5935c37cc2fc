"""
Error taxonomy for the coordinator.

Store errors are split into transient failures (retried by ResourceClient)
and semantic ones (NotFound, AlreadyExists, Conflict) that are surfaced
immediately. Convergence errors carry the number of poll attempts made.
"""

from typing import Optional


class CoordinatorError(Exception):
    """Base class for every error raised by the coordinator."""


class ConfigurationError(CoordinatorError):
    """Invalid or missing configuration at an API boundary."""


class InvalidQuantity(CoordinatorError, ValueError):
    """A size string could not be parsed."""


# ============================================================================
# STORE ERRORS
# ============================================================================

class StoreError(CoordinatorError):
    """Transient store failure (connection lost, timeout, ...)."""


class StoreUnavailable(CoordinatorError):
    """A store call kept failing until the retry budget was spent."""

    def __init__(self, operation: str, name: str, attempts: int, last_error: BaseException):
        self.operation = operation
        self.name = name
        self.attempts = attempts
        self.last_error = last_error
        target = f" {name}" if name else ""
        super().__init__(
            f"after {attempts} attempts of {operation}{target}, last error: {last_error}"
        )


class SemanticStoreError(CoordinatorError):
    """Store rejected the request; retrying the same request cannot help."""

    def __init__(self, kind: str, name: str, message: Optional[str] = None):
        self.kind = kind
        self.name = name
        super().__init__(message or f"{kind} {name}")


class NotFoundError(SemanticStoreError):
    def __init__(self, kind: str, name: str):
        super().__init__(kind, name, f"{kind} {name} not found")


class AlreadyExistsError(SemanticStoreError):
    def __init__(self, kind: str, name: str):
        super().__init__(kind, name, f"{kind} {name} already exists")


class ConflictError(SemanticStoreError):
    def __init__(self, kind: str, name: str, message: Optional[str] = None):
        super().__init__(
            kind, name, message or f"{kind} {name} was modified concurrently (resource version mismatch)"
        )


class ConflictRetriesExhausted(ConflictError):
    """Optimistic-concurrency retries ran out; wraps the last conflict."""

    def __init__(self, kind: str, name: str, attempts: int, last_error: ConflictError, action: str = "update"):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            kind,
            name,
            f"after {attempts} attempts of {action} on {kind} {name}, last error: {last_error}",
        )


# ============================================================================
# PLACEMENT ERRORS
# ============================================================================

class PoolNotFound(CoordinatorError):
    def __init__(self, group_name: str, pool_name: str):
        self.group_name = group_name
        self.pool_name = pool_name
        super().__init__(f"thin pool '{pool_name}' not found in volume group {group_name}")


class NoEligibleTarget(CoordinatorError):
    """No volume group satisfies the placement constraints."""


# ============================================================================
# CONVERGENCE ERRORS
# ============================================================================

class ConvergenceError(CoordinatorError):
    def __init__(self, name: str, attempts: int, message: str):
        self.name = name
        self.attempts = attempts
        super().__init__(message)


class VolumeFailed(ConvergenceError):
    def __init__(self, name: str, attempts: int, reason: str):
        self.reason = reason
        super().__init__(
            name, attempts, f"failed to create logical volume {name}, reason: {reason}"
        )


class ConflictingDeletion(ConvergenceError):
    def __init__(self, name: str, attempts: int):
        super().__init__(
            name,
            attempts,
            f"failed to create logical volume {name}, reason: the record is being deleted",
        )


class Canceled(ConvergenceError):
    def __init__(self, name: str, attempts: int, reason: str = "canceled by caller"):
        self.reason = reason
        super().__init__(name, attempts, f"waiting for logical volume {name} stopped: {reason}")


class ConvergenceTimeout(ConvergenceError):
    def __init__(self, name: str, attempts: int, reason: str = "deadline exceeded"):
        self.reason = reason
        super().__init__(
            name, attempts, f"logical volume {name} did not converge after {attempts} attempts: {reason}"
        )
