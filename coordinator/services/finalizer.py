import logging
from typing import Optional, Tuple

from coordinator.cancellation import CancelToken
from coordinator.errors import ConfigurationError, ConflictError, ConflictRetriesExhausted
from coordinator.records import LogicalVolumeRecord
from coordinator.services.resource_client import ResourceClient
from coordinator.store import LOGICAL_VOLUME

logger = logging.getLogger(__name__)


class FinalizerReleaser:
    """
    Removes the coordinator's finalizer token from a logical volume record.

    Updates are conditional on the record's resource_version. On a conflict
    the record is re-read and the removal retried on the fresh snapshot; the
    snapshot passed in is never modified.
    """

    def __init__(self, client: ResourceClient, attempt_budget: Optional[int] = None):
        self.client = client
        self.attempt_budget = attempt_budget if attempt_budget is not None else client.retry.attempts

    def release(
        self,
        record: LogicalVolumeRecord,
        token: str,
        attempt_budget: Optional[int] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> Tuple[bool, LogicalVolumeRecord]:
        """
        Returns:
            (removed, latest snapshot). removed is False when the token was
            not on the record, in which case no update is issued.

        Raises:
            ConflictRetriesExhausted: every attempt hit a version conflict
            Canceled / ConvergenceTimeout: cancel_token done between attempts
            any other store error, immediately
        """
        budget = attempt_budget if attempt_budget is not None else self.attempt_budget
        if budget < 1:
            raise ConfigurationError(f"finalizer release budget must be >= 1, got {budget}")

        current = record
        last_conflict: Optional[ConflictError] = None
        for attempt in range(budget):
            if not current.has_finalizer(token):
                logger.debug(f"[release_finalizer] {token} not present on {LOGICAL_VOLUME} {current.name}")
                return False, current

            logger.debug(f"[release_finalizer] removing finalizer {token} from {LOGICAL_VOLUME} {current.name} (attempt {attempt + 1}/{budget})")
            try:
                updated = self.client.update(current.without_finalizer(token))
                return True, updated
            except ConflictError as e:
                last_conflict = e
                logger.debug(f"[release_finalizer] conflict while updating {LOGICAL_VOLUME} {current.name}: {e}")

            if attempt < budget - 1:
                if cancel_token is not None and cancel_token.done:
                    raise cancel_token.stopped_error(current.name, attempt + 1)
                self.client.backoff(attempt)
                current = self.client.get(current.name)

        logger.error(f"[release_finalizer] giving up on {LOGICAL_VOLUME} {record.name} after {budget} conflicting updates")
        raise ConflictRetriesExhausted(
            LOGICAL_VOLUME, record.name, budget, last_conflict, action=f"removing finalizer {token}"
        )
