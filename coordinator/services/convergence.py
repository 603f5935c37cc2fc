"""
Convergence polling for logical volume records.

The external reconciler writes status asynchronously; the poller re-reads
the record until it is Created with the requested size, Failed, or being
deleted by someone else. Every wait must be bounded, either by a deadline
on the cancel token or by max_attempts.
"""

import logging
from typing import Optional

from coordinator.cancellation import CancelToken
from coordinator.config import PollPolicy
from coordinator.errors import (
    ConfigurationError,
    ConflictingDeletion,
    ConvergenceTimeout,
    VolumeFailed,
)
from coordinator.models import VolumePhase
from coordinator.quantity import Quantity, format_quantity, parse_quantity, sizes_equal_within_delta
from coordinator.services.resource_client import ResourceClient

logger = logging.getLogger(__name__)


class ConvergencePoller:

    def __init__(self, client: ResourceClient, poll: Optional[PollPolicy] = None):
        self.client = client
        self.poll = poll or PollPolicy()

    def wait_for_creation(
        self,
        name: str,
        desired_size: Quantity,
        tolerance: Quantity,
        cancel_token: CancelToken,
        max_attempts: Optional[int] = None,
        trace_id: str = "-",
    ) -> int:
        """
        Block until the record is Created with a size within tolerance.

        Returns:
            number of fetches made

        Raises:
            ConfigurationError: neither a token deadline nor max_attempts given
            Canceled / ConvergenceTimeout: token signaled, deadline or attempt cap hit
            ConflictingDeletion: the record is being deleted
            VolumeFailed: the reconciler reported failure
        """
        if not cancel_token.has_deadline and max_attempts is None:
            raise ConfigurationError(
                f"waiting for logical volume {name} needs a cancel token deadline or max_attempts"
            )
        if max_attempts is not None and max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {max_attempts}")

        desired = parse_quantity(desired_size)
        allowed = parse_quantity(tolerance)
        prefix = f"[wait_for_creation][trace:{trace_id}][volume:{name}]"
        logger.info(f"{prefix} Waiting for logical volume status update (size {format_quantity(desired)}, delta {format_quantity(allowed)})")

        attempts = 0
        while True:
            if cancel_token.done:
                logger.warning(f"{prefix} stopped after {attempts} attempts: {cancel_token.reason}")
                raise cancel_token.stopped_error(name, attempts)

            attempts += 1
            record = self.client.get(name)
            status = record.status

            size_matches = (
                status is not None
                and status.actual_size is not None
                and sizes_equal_within_delta(desired, status.actual_size, allowed)
            )
            if attempts % self.poll.log_every == 0:
                logger.info(f"{prefix} Attempt {attempts}: status={status}; size_matches={size_matches}")

            if record.deletion_requested:
                raise ConflictingDeletion(name, attempts)

            if status is not None:
                if status.phase == VolumePhase.FAILED:
                    raise VolumeFailed(name, attempts, status.failure_reason or "unknown")
                if status.phase == VolumePhase.CREATED:
                    if size_matches:
                        logger.info(f"{prefix} converged after {attempts} attempts")
                        return attempts
                    logger.debug(f"{prefix} Attempt {attempts}: created but size {status.actual_size} does not match yet")
                else:
                    logger.debug(f"{prefix} Attempt {attempts}: phase is {status.phase.value}")
            else:
                logger.debug(f"{prefix} Attempt {attempts}: no status reported yet")

            if max_attempts is not None and attempts >= max_attempts:
                logger.warning(f"{prefix} no convergence within {max_attempts} attempts")
                raise ConvergenceTimeout(name, attempts, f"attempt limit {max_attempts} reached")

            if cancel_token.wait(self.poll.interval):
                logger.warning(f"{prefix} stopped after {attempts} attempts: {cancel_token.reason}")
                raise cancel_token.stopped_error(name, attempts)
