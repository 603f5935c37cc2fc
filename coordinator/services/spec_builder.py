import logging
from typing import Mapping

from coordinator.models import VolumeType
from coordinator.quantity import format_quantity
from coordinator.records import LogicalVolumeSpec, VolumeGroupRecord

logger = logging.getLogger(__name__)


def build_spec(
    name: str,
    group: VolumeGroupRecord,
    selector: Mapping[str, str],
    volume_type: VolumeType,
    size: int,
    contiguous: bool,
) -> LogicalVolumeSpec:
    """
    Spec of the logical volume record to create in `group`.

    Thin volumes name their pool; thick volumes carry contiguous=True only
    when requested, otherwise the field stays unset.
    """
    fields = {
        "volume_type": volume_type,
        "requested_size": format_quantity(size),
        "group_name": group.name,
    }
    if volume_type == VolumeType.THIN:
        fields["pool_name"] = selector[group.name]
        logger.debug(f"[build_spec] {name}: thin pool {fields['pool_name']} in {group.name}")
    elif contiguous:
        fields["contiguous"] = True
        logger.debug(f"[build_spec] {name}: thick contiguous in {group.name}")
    return LogicalVolumeSpec(**fields)
