"""
Volume provisioning coordinator.

Provision: list eligible groups -> pick node and group -> build spec ->
create record -> wait for the reconciler to converge.
Deprovision: get record -> release finalizer -> delete record.
Expand: rewrite the requested size; callers wait with wait_for_size().

Capacity is not reserved between reading group free space and creating the
record; concurrent provisions may pick the same group.
"""

import logging
import random
import time
import uuid
from typing import Callable, Optional, Tuple

from coordinator.cancellation import CancelToken
from coordinator.config import CoordinatorConfig
from coordinator.errors import ConfigurationError, NoEligibleTarget, NotFoundError
from coordinator.models import VolumeType
from coordinator.quantity import Quantity, format_quantity, parse_quantity
from coordinator.records import LogicalVolumeRecord, ProvisioningRequest
from coordinator.services.capacity import CapacityAggregator
from coordinator.services.convergence import ConvergencePoller
from coordinator.services.finalizer import FinalizerReleaser
from coordinator.services.placement import select_group_for_node
from coordinator.services.resource_client import ResourceClient
from coordinator.services.spec_builder import build_spec
from coordinator.store import DeclarativeStore

logger = logging.getLogger(__name__)


def new_trace_id() -> str:
    return uuid.uuid4().hex[:12]


class VolumeCoordinator:
    """
    Provisions and deprovisions logical volumes through the declarative store.

    Args:
        store: DeclarativeStore implementation
        config: retry, poll, finalizer and tolerance settings
        sleep: sleep function used for store retry backoff (injected by tests)
        rng: random source for backoff jitter
    """

    def __init__(
        self,
        store: DeclarativeStore,
        config: Optional[CoordinatorConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or CoordinatorConfig()
        self.client = ResourceClient(store, self.config.retry, sleep=sleep, rng=rng)
        self.capacity = CapacityAggregator(self.client)
        self.poller = ConvergencePoller(self.client, self.config.poll)
        self.finalizers = FinalizerReleaser(self.client)
        self.default_tolerance = parse_quantity(self.config.size_tolerance)

    @property
    def finalizer_token(self) -> str:
        return self.config.finalizer_token

    # ========================================================================
    # PROVISION
    # ========================================================================

    def provision(
        self,
        request: ProvisioningRequest,
        cancel_token: CancelToken,
        trace_id: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Place, create and wait for one logical volume.

        Steps:
        1. List the storage class's volume groups
        2. Use the preferred node, or the node with the most free space
        3. Pick that node's volume group and build the record spec
        4. Create the record carrying the coordinator's finalizer
        5. Wait until the reconciler reports it Created with the right size

        Args:
            request: what to provision
            cancel_token: must carry a deadline unless max_attempts is given
            trace_id: log correlation id (generated when missing)
            max_attempts: cap on convergence polls

        Returns:
            (assigned_node, volume_id)
        """
        trace_id = trace_id or new_trace_id()
        name = request.name
        prefix = f"[provision][trace:{trace_id}][volume:{name}]"

        if not cancel_token.has_deadline and max_attempts is None:
            raise ConfigurationError(
                f"provisioning {name} needs a cancel token deadline or max_attempts"
            )
        if cancel_token.done:
            raise cancel_token.stopped_error(name, 0)

        selector = request.eligible_groups
        groups = self.capacity.list_eligible_groups(selector)
        if not groups:
            raise NoEligibleTarget(
                f"none of the volume groups {sorted(selector)} for {name} exist in the store"
            )

        node = request.preferred_node
        if node:
            logger.info(f"{prefix} using preferred node {node}")
        else:
            node, free = self.capacity.node_with_max_free_space(groups, selector, request.volume_type)
            if not node:
                raise NoEligibleTarget(
                    f"no volume group among {sorted(selector)} has free space for {name}"
                )
            logger.info(f"{prefix} node {node} has the most free space: {format_quantity(free)}")

        group = select_group_for_node(groups, node)
        if request.volume_type == VolumeType.THIN:
            # Fails with PoolNotFound before anything is written.
            self.capacity.free_space(group, request.volume_type, selector.get(group.name))

        spec = build_spec(
            name, group, selector, request.volume_type, request.desired_size, request.contiguous
        )
        logger.info(f"{prefix} creating record in group {group.name} on node {node}: {spec}")
        self.client.create(
            LogicalVolumeRecord(name=name, spec=spec, finalizers=(self.finalizer_token,))
        )

        tolerance = request.size_tolerance if request.size_tolerance is not None else self.default_tolerance
        attempts = self.poller.wait_for_creation(
            name, request.desired_size, tolerance, cancel_token, max_attempts=max_attempts, trace_id=trace_id
        )
        logger.info(f"{prefix} volume ready on node {node} after {attempts} attempts")
        return node, name

    # ========================================================================
    # DEPROVISION
    # ========================================================================

    def deprovision(
        self,
        volume_id: str,
        cancel_token: Optional[CancelToken] = None,
        trace_id: Optional[str] = None,
    ) -> None:
        """
        Release the coordinator's finalizer and delete the record.

        Raises NotFoundError when the volume does not exist.
        """
        trace_id = trace_id or new_trace_id()
        prefix = f"[deprovision][trace:{trace_id}][volume:{volume_id}]"
        cancel_token = cancel_token or CancelToken()

        if cancel_token.done:
            raise cancel_token.stopped_error(volume_id, 0)

        logger.debug(f"{prefix} Trying to find logical volume")
        record = self.client.get(volume_id)
        logger.debug(f"{prefix} found: {record}")

        try:
            removed, record = self.finalizers.release(record, self.finalizer_token, cancel_token=cancel_token)
        except NotFoundError:
            logger.info(f"{prefix} record disappeared while releasing finalizer, nothing left to delete")
            return

        if removed:
            logger.debug(f"{prefix} finalizer {self.finalizer_token} removed")
        else:
            logger.warning(f"{prefix} finalizer {self.finalizer_token} not found on the record")

        if cancel_token.done:
            raise cancel_token.stopped_error(volume_id, 0)

        try:
            self.client.delete(volume_id)
        except NotFoundError:
            logger.info(f"{prefix} record already removed by the store")
            return
        logger.info(f"{prefix} deleted")

    # ========================================================================
    # EXPAND
    # ========================================================================

    def expand(self, volume_id: str, new_size_text: str, trace_id: Optional[str] = None) -> LogicalVolumeRecord:
        """
        Write a new requested size; returns the updated record.

        Call wait_for_size() afterwards when confirmation is needed.
        """
        trace_id = trace_id or new_trace_id()
        size_text = str(new_size_text).strip()
        new_size = parse_quantity(size_text)
        if new_size <= 0:
            raise ConfigurationError(f"new size for {volume_id} must be positive, got {size_text!r}")

        record = self.client.get(volume_id)
        updated = self.client.update(record.with_requested_size(size_text))
        logger.info(
            f"[expand][trace:{trace_id}][volume:{volume_id}] requested size "
            f"{record.spec.requested_size} -> {size_text}"
        )
        return updated

    def wait_for_size(
        self,
        volume_id: str,
        size: Quantity,
        cancel_token: CancelToken,
        tolerance: Optional[Quantity] = None,
        max_attempts: Optional[int] = None,
        trace_id: Optional[str] = None,
    ) -> int:
        return self.poller.wait_for_creation(
            volume_id,
            size,
            tolerance if tolerance is not None else self.default_tolerance,
            cancel_token,
            max_attempts=max_attempts,
            trace_id=trace_id or new_trace_id(),
        )
