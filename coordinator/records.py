"""
Immutable snapshots of store records and the provisioning request.

The store hands out frozen models; a change is expressed by building a new
snapshot with model_copy(update=...) and submitting it back to the store.
"""

from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coordinator.models import VolumePhase, VolumeType
from coordinator.quantity import parse_quantity


class ThinPoolStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    available_space: int = 0


class VolumeGroupRecord(BaseModel):
    """Capacity pool on one node, written by the external reconciler only."""

    model_config = ConfigDict(frozen=True)

    name: str
    host_node: str
    total_size: int = 0
    allocated_size: int = 0
    thin_pools: Tuple[ThinPoolStatus, ...] = ()
    labels: Dict[str, str] = Field(default_factory=dict)


class LogicalVolumeSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    volume_type: VolumeType
    requested_size: str
    group_name: str
    pool_name: Optional[str] = None
    contiguous: Optional[bool] = None


class LogicalVolumeStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: VolumePhase = VolumePhase.PENDING
    actual_size: Optional[int] = None
    failure_reason: Optional[str] = None


class LogicalVolumeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    spec: LogicalVolumeSpec
    status: Optional[LogicalVolumeStatus] = None
    finalizers: Tuple[str, ...] = ()
    deletion_requested: bool = False
    resource_version: int = 0

    def has_finalizer(self, token: str) -> bool:
        return token in self.finalizers

    def without_finalizer(self, token: str) -> "LogicalVolumeRecord":
        return self.model_copy(
            update={"finalizers": tuple(f for f in self.finalizers if f != token)}
        )

    def with_requested_size(self, size_text: str) -> "LogicalVolumeRecord":
        spec = self.spec.model_copy(update={"requested_size": size_text})
        return self.model_copy(update={"spec": spec})


class ProvisioningRequest(BaseModel):
    """
    Request to provision one logical volume.

    eligible_groups maps volume group name -> thin pool name ("" for thick).
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    desired_size: int
    volume_type: VolumeType
    eligible_groups: Dict[str, str]
    preferred_node: Optional[str] = None
    contiguous: bool = False
    size_tolerance: Optional[int] = None

    @field_validator("desired_size", "size_tolerance", mode="before")
    @classmethod
    def _parse_size(cls, value):
        if value is None:
            return value
        return parse_quantity(value)

    @field_validator("desired_size")
    @classmethod
    def _positive_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("desired size must be positive")
        return value

    @field_validator("size_tolerance")
    @classmethod
    def _positive_tolerance(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("size tolerance must be positive")
        return value

    @field_validator("eligible_groups")
    @classmethod
    def _non_empty_selector(cls, value: Dict[str, str]) -> Dict[str, str]:
        if not value:
            raise ValueError("at least one eligible volume group is required")
        return value
