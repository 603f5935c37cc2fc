"""
Retrying client for the declarative store.

Every call goes through one bounded retry loop. Semantic errors
(NotFound, AlreadyExists, Conflict) are raised on first sight; transient
StoreError and OSError failures are retried with backoff and finally
surfaced as StoreUnavailable. Anything else propagates unchanged.
"""

import logging
import random
import time
from typing import Callable, List, Optional, TypeVar

from coordinator.config import RetryPolicy
from coordinator.errors import SemanticStoreError, StoreError, StoreUnavailable
from coordinator.records import LogicalVolumeRecord, VolumeGroupRecord
from coordinator.store import DeclarativeStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceClient:
    """
    Store access with a uniform retry policy.

    Args:
        store: DeclarativeStore implementation
        retry: attempt budget and backoff parameters
        sleep: sleep function (injected by tests)
        rng: random source for backoff jitter
    """

    def __init__(
        self,
        store: DeclarativeStore,
        retry: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.retry = retry or RetryPolicy()
        self.sleep = sleep
        self.rng = rng or random.Random()

    def backoff(self, attempt: int):
        """Sleep after the given zero-based failed attempt."""
        delay = self.retry.delay(attempt, self.rng)
        if delay > 0:
            self.sleep(delay)

    def _call(self, operation: str, name: str, fn: Callable[[], T]) -> T:
        last_error: Optional[BaseException] = None
        for attempt in range(self.retry.attempts):
            try:
                return fn()
            except SemanticStoreError:
                raise
            except (StoreError, OSError) as e:
                last_error = e
                logger.warning(
                    f"[{operation}] attempt {attempt + 1}/{self.retry.attempts} for '{name}' failed: {e}"
                )
                if attempt < self.retry.attempts - 1:
                    self.backoff(attempt)

        logger.error(f"[{operation}] giving up on '{name}' after {self.retry.attempts} attempts")
        raise StoreUnavailable(operation, name, self.retry.attempts, last_error) from last_error

    # ========================================================================
    # LOGICAL VOLUMES
    # ========================================================================

    def create(self, record: LogicalVolumeRecord) -> LogicalVolumeRecord:
        return self._call(
            "creating LogicalVolume", record.name, lambda: self.store.create_logical_volume(record)
        )

    def get(self, name: str) -> LogicalVolumeRecord:
        return self._call("getting LogicalVolume", name, lambda: self.store.get_logical_volume(name))

    def update(self, record: LogicalVolumeRecord) -> LogicalVolumeRecord:
        return self._call(
            "updating LogicalVolume", record.name, lambda: self.store.update_logical_volume(record)
        )

    def delete(self, name: str) -> None:
        self._call("deleting LogicalVolume", name, lambda: self.store.delete_logical_volume(name))

    def list_volumes(self) -> List[LogicalVolumeRecord]:
        return self._call("listing LogicalVolumes", "", self.store.list_logical_volumes)

    # ========================================================================
    # VOLUME GROUPS
    # ========================================================================

    def list_groups(self) -> List[VolumeGroupRecord]:
        return self._call("listing VolumeGroups", "", self.store.list_volume_groups)

    def get_group(self, name: str) -> VolumeGroupRecord:
        return self._call("getting VolumeGroup", name, lambda: self.store.get_volume_group(name))
