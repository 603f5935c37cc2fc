import logging
from typing import Iterable, List, Mapping, Optional, Tuple

from coordinator.errors import PoolNotFound
from coordinator.models import VolumeType
from coordinator.quantity import format_quantity
from coordinator.records import VolumeGroupRecord
from coordinator.services.resource_client import ResourceClient

logger = logging.getLogger(__name__)


def free_space(group: VolumeGroupRecord, volume_type: VolumeType, pool_name: Optional[str] = None) -> int:
    """
    Free bytes a new volume of the given type could use in this group.

    Thick volumes draw from the group itself, thin volumes from the named pool.
    """
    if volume_type == VolumeType.THICK:
        return group.total_size - group.allocated_size

    for pool in group.thin_pools:
        if pool.name == pool_name:
            return pool.available_space
    raise PoolNotFound(group.name, pool_name or "")


class CapacityAggregator:
    """Computes free space across the volume groups a storage class allows."""

    def __init__(self, client: ResourceClient):
        self.client = client

    def list_eligible_groups(self, selector: Mapping[str, str]) -> List[VolumeGroupRecord]:
        """All groups named in the selector, in the store's list order."""
        eligible = []
        for group in self.client.list_groups():
            if group.name in selector:
                logger.debug(f"[list_eligible_groups] found group from storage class: {group.name} (node {group.host_node})")
                eligible.append(group)
            else:
                logger.debug(f"[list_eligible_groups] skip group: {group.name}")
        logger.info(f"[list_eligible_groups] {len(eligible)} of {len(selector)} selected groups present in store")
        return eligible

    def free_space(self, group: VolumeGroupRecord, volume_type: VolumeType, pool_name: Optional[str] = None) -> int:
        return free_space(group, volume_type, pool_name)

    def node_with_max_free_space(
        self,
        groups: Iterable[VolumeGroupRecord],
        selector: Mapping[str, str],
        volume_type: VolumeType,
    ) -> Tuple[str, int]:
        """
        Node hosting the group with the most free space.

        A later group replaces the current best only with strictly more free
        space, so the first group in iteration order wins ties.
        Returns ("", 0) when no group has any free space.
        """
        node_name = ""
        max_free = 0
        for group in groups:
            pool_name = selector.get(group.name) if volume_type == VolumeType.THIN else None
            group_free = free_space(group, volume_type, pool_name)
            logger.debug(f"[node_with_max_free_space] group {group.name} on {group.host_node}: {format_quantity(group_free)} free")
            if group_free > max_free:
                node_name = group.host_node
                max_free = group_free
        return node_name, max_free
