from sqlalchemy import Column, Integer, BigInteger, String, Enum, ForeignKey, Boolean, DateTime, JSON
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
import enum

Base = declarative_base()

# ============================================================================
# ENUM DEFINITIONS
# ============================================================================

class VolumeType(str, enum.Enum):
    """Logical volume provisioning type"""
    THIN = "Thin"
    THICK = "Thick"

class VolumePhase(str, enum.Enum):
    """Logical volume phase as reported by the reconciler"""
    PENDING = "Pending"
    CREATED = "Created"
    FAILED = "Failed"

# ============================================================================
# STORE MODEL DEFINITIONS
# ============================================================================

class VolumeGroup(Base):
    """LVM volume group on one node, maintained by the reconciler"""
    __tablename__ = "volume_groups"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    host_node = Column(String, nullable=False)

    # Capacity (bytes)
    total_size = Column(BigInteger, nullable=False, default=0)
    allocated_size = Column(BigInteger, nullable=False, default=0)

    labels = Column(JSON, default=dict)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    thin_pools = relationship(
        "ThinPool",
        back_populates="volume_group",
        cascade="all, delete-orphan",
        order_by="ThinPool.id",
    )


class ThinPool(Base):
    """Thin pool carved out of a volume group"""
    __tablename__ = "thin_pools"

    id = Column(Integer, primary_key=True)
    volume_group_id = Column(Integer, ForeignKey("volume_groups.id"), nullable=False)
    name = Column(String, nullable=False)
    available_space = Column(BigInteger, nullable=False, default=0)

    # Relationships
    volume_group = relationship("VolumeGroup", back_populates="thin_pools")


class LogicalVolume(Base):
    """
    Declarative logical volume record.

    Spec columns are written by the coordinator, status columns by the
    reconciler. Every write bumps resource_version.
    """
    __tablename__ = "logical_volumes"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)

    # Spec
    volume_type = Column(Enum(VolumeType), nullable=False)
    requested_size = Column(String, nullable=False)
    group_name = Column(String, nullable=False)
    pool_name = Column(String, nullable=True)
    contiguous = Column(Boolean, nullable=True)

    # Status (NULL phase = not yet observed by the reconciler)
    phase = Column(Enum(VolumePhase), nullable=True)
    actual_size = Column(BigInteger, nullable=True)
    failure_reason = Column(String, nullable=True)

    # Metadata
    finalizers = Column(JSON, default=list)
    deletion_requested = Column(Boolean, default=False, nullable=False)
    resource_version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
