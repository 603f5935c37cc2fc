"""
Storage class parameters -> provisioning request.

The volume groups of a storage class are given as a YAML list:

    - name: lvg-a
      thin:
        poolName: pool1
    - name: lvg-b
      thin:
        poolName: pool1

which becomes the selector {"lvg-a": "pool1", "lvg-b": "pool1"}.
Thick storage classes omit the thin section ("" pool).
"""

import logging
from typing import Dict, Mapping, Optional

import yaml

from coordinator.errors import ConfigurationError
from coordinator.models import VolumeType
from coordinator.quantity import Quantity
from coordinator.records import ProvisioningRequest

logger = logging.getLogger(__name__)

TYPE_PARAM_KEY = "coordinator.storage.io/lvm-type"
VOLUME_GROUPS_PARAM_KEY = "coordinator.storage.io/lvm-volume-groups"
THICK_CONTIGUOUS_PARAM_KEY = "coordinator.storage.io/lvm-thick-contiguous"


def parse_lvg_parameters(text: str) -> Dict[str, str]:
    """Selector mapping volume group name -> thin pool name."""
    try:
        entries = yaml.safe_load(text) or []
    except yaml.YAMLError as e:
        raise ConfigurationError(f"unmarshal volume groups parameter: {e}") from e

    if not isinstance(entries, list):
        raise ConfigurationError(f"volume groups parameter must be a list, got {type(entries).__name__}")

    selector: Dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ConfigurationError(f"volume group entry without a name: {entry!r}")
        thin = entry.get("thin") or {}
        selector[str(entry["name"])] = str(thin.get("poolName") or "")

    logger.info(f"[parse_lvg_parameters] storage class volume groups: {selector}")
    return selector


def parse_volume_type(value: str) -> VolumeType:
    for volume_type in VolumeType:
        if value.strip().lower() == volume_type.value.lower():
            return volume_type
    raise ConfigurationError(f"unknown volume type: {value!r}")


def is_contiguous(parameters: Mapping[str, str], volume_type: VolumeType) -> bool:
    if volume_type == VolumeType.THIN:
        return False
    return parameters.get(THICK_CONTIGUOUS_PARAM_KEY) == "true"


def request_from_parameters(
    name: str,
    size: Quantity,
    parameters: Mapping[str, str],
    preferred_node: Optional[str] = None,
    size_tolerance: Optional[Quantity] = None,
) -> ProvisioningRequest:
    if TYPE_PARAM_KEY not in parameters:
        raise ConfigurationError(f"storage class parameter {TYPE_PARAM_KEY} is required")
    if VOLUME_GROUPS_PARAM_KEY not in parameters:
        raise ConfigurationError(f"storage class parameter {VOLUME_GROUPS_PARAM_KEY} is required")

    volume_type = parse_volume_type(parameters[TYPE_PARAM_KEY])
    return ProvisioningRequest(
        name=name,
        desired_size=size,
        volume_type=volume_type,
        eligible_groups=parse_lvg_parameters(parameters[VOLUME_GROUPS_PARAM_KEY]),
        preferred_node=preferred_node or None,
        contiguous=is_contiguous(parameters, volume_type),
        size_tolerance=size_tolerance,
    )
