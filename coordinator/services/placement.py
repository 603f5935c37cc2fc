from typing import Iterable

from coordinator.errors import NoEligibleTarget
from coordinator.records import VolumeGroupRecord


def select_group_for_node(groups: Iterable[VolumeGroupRecord], node: str) -> VolumeGroupRecord:
    """First group hosted on `node`."""
    for group in groups:
        if group.host_node == node:
            return group
    raise NoEligibleTarget(f"no eligible volume group found for node '{node}'")
