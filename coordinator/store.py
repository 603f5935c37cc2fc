"""
Declarative store contract and its SQLAlchemy-backed implementation.

The store behaves like an eventually-consistent object API:
- names are unique per kind (create raises AlreadyExistsError),
- updates are conditional on resource_version (ConflictError on mismatch),
- delete of a record that still carries finalizers only marks it
  deletion_requested; the row disappears once the last finalizer is removed.

Status columns belong to the external reconciler and are written through
set_status() / upsert_volume_group(), never through update_logical_volume().
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import select, update as sql_update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from coordinator.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreError,
)
from coordinator.models import LogicalVolume, ThinPool, VolumeGroup, VolumePhase
from coordinator.records import (
    LogicalVolumeRecord,
    LogicalVolumeSpec,
    LogicalVolumeStatus,
    ThinPoolStatus,
    VolumeGroupRecord,
)

logger = logging.getLogger(__name__)

LOGICAL_VOLUME = "LogicalVolume"
VOLUME_GROUP = "VolumeGroup"


class DeclarativeStore(ABC):
    """Operations the coordinator needs from the declarative store."""

    @abstractmethod
    def list_volume_groups(self) -> List[VolumeGroupRecord]:
        ...

    @abstractmethod
    def get_volume_group(self, name: str) -> VolumeGroupRecord:
        ...

    @abstractmethod
    def create_logical_volume(self, record: LogicalVolumeRecord) -> LogicalVolumeRecord:
        ...

    @abstractmethod
    def get_logical_volume(self, name: str) -> LogicalVolumeRecord:
        ...

    @abstractmethod
    def list_logical_volumes(self) -> List[LogicalVolumeRecord]:
        ...

    @abstractmethod
    def update_logical_volume(self, record: LogicalVolumeRecord) -> LogicalVolumeRecord:
        """Write spec and finalizers if record.resource_version is still current."""

    @abstractmethod
    def delete_logical_volume(self, name: str) -> None:
        ...


# ============================================================================
# ROW <-> SNAPSHOT CONVERSION
# ============================================================================

def _group_to_record(row: VolumeGroup) -> VolumeGroupRecord:
    return VolumeGroupRecord(
        name=row.name,
        host_node=row.host_node,
        total_size=int(row.total_size or 0),
        allocated_size=int(row.allocated_size or 0),
        thin_pools=tuple(
            ThinPoolStatus(name=pool.name, available_space=int(pool.available_space or 0))
            for pool in row.thin_pools
        ),
        labels=dict(row.labels or {}),
    )


def _volume_to_record(row: LogicalVolume) -> LogicalVolumeRecord:
    status = None
    if row.phase is not None:
        status = LogicalVolumeStatus(
            phase=row.phase,
            actual_size=row.actual_size,
            failure_reason=row.failure_reason,
        )
    return LogicalVolumeRecord(
        name=row.name,
        spec=LogicalVolumeSpec(
            volume_type=row.volume_type,
            requested_size=row.requested_size,
            group_name=row.group_name,
            pool_name=row.pool_name,
            contiguous=row.contiguous,
        ),
        status=status,
        finalizers=tuple(row.finalizers or ()),
        deletion_requested=bool(row.deletion_requested),
        resource_version=int(row.resource_version),
    )


# ============================================================================
# SQLALCHEMY STORE
# ============================================================================

class SQLStore(DeclarativeStore):
    """
    Store backed by a relational database through SQLAlchemy.

    Usage:
        engine = create_store_engine("sqlite:///./coordinator/data/store.db")
        init_db(engine)
        store = SQLStore(create_session_factory(engine))
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except IntegrityError:
            db.rollback()
            raise
        except DBAPIError as e:
            db.rollback()
            raise StoreError(f"store request failed: {e.orig or e}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _find_volume(db: Session, name: str) -> Optional[LogicalVolume]:
        return db.scalars(select(LogicalVolume).where(LogicalVolume.name == name)).first()

    @staticmethod
    def _find_group(db: Session, name: str) -> Optional[VolumeGroup]:
        return db.scalars(select(VolumeGroup).where(VolumeGroup.name == name)).first()

    # ------------------------------------------------------------------------
    # Volume groups
    # ------------------------------------------------------------------------

    def list_volume_groups(self) -> List[VolumeGroupRecord]:
        with self._session() as db:
            rows = db.scalars(select(VolumeGroup).order_by(VolumeGroup.id)).all()
            return [_group_to_record(row) for row in rows]

    def get_volume_group(self, name: str) -> VolumeGroupRecord:
        with self._session() as db:
            row = self._find_group(db, name)
            if row is None:
                raise NotFoundError(VOLUME_GROUP, name)
            return _group_to_record(row)

    # ------------------------------------------------------------------------
    # Logical volumes
    # ------------------------------------------------------------------------

    def create_logical_volume(self, record: LogicalVolumeRecord) -> LogicalVolumeRecord:
        try:
            with self._session() as db:
                row = LogicalVolume(
                    name=record.name,
                    volume_type=record.spec.volume_type,
                    requested_size=record.spec.requested_size,
                    group_name=record.spec.group_name,
                    pool_name=record.spec.pool_name,
                    contiguous=record.spec.contiguous,
                    finalizers=list(record.finalizers),
                    deletion_requested=False,
                    resource_version=1,
                )
                db.add(row)
                db.commit()
                db.refresh(row)
                return _volume_to_record(row)
        except IntegrityError as e:
            raise AlreadyExistsError(LOGICAL_VOLUME, record.name) from e

    def get_logical_volume(self, name: str) -> LogicalVolumeRecord:
        with self._session() as db:
            row = self._find_volume(db, name)
            if row is None:
                raise NotFoundError(LOGICAL_VOLUME, name)
            return _volume_to_record(row)

    def list_logical_volumes(self) -> List[LogicalVolumeRecord]:
        with self._session() as db:
            rows = db.scalars(select(LogicalVolume).order_by(LogicalVolume.id)).all()
            return [_volume_to_record(row) for row in rows]

    def update_logical_volume(self, record: LogicalVolumeRecord) -> LogicalVolumeRecord:
        with self._session() as db:
            result = db.execute(
                sql_update(LogicalVolume)
                .where(
                    LogicalVolume.name == record.name,
                    LogicalVolume.resource_version == record.resource_version,
                )
                .values(
                    requested_size=record.spec.requested_size,
                    pool_name=record.spec.pool_name,
                    contiguous=record.spec.contiguous,
                    finalizers=list(record.finalizers),
                    resource_version=record.resource_version + 1,
                )
            )
            if result.rowcount == 0:
                db.rollback()
                if self._find_volume(db, record.name) is None:
                    raise NotFoundError(LOGICAL_VOLUME, record.name)
                raise ConflictError(LOGICAL_VOLUME, record.name)

            row = self._find_volume(db, record.name)
            db.refresh(row)
            updated = _volume_to_record(row)

            if row.deletion_requested and not row.finalizers:
                logger.debug(f"Last finalizer removed from {LOGICAL_VOLUME} {record.name}, removing record")
                db.delete(row)

            db.commit()
            return updated

    def delete_logical_volume(self, name: str) -> None:
        with self._session() as db:
            row = self._find_volume(db, name)
            if row is None:
                raise NotFoundError(LOGICAL_VOLUME, name)

            if row.finalizers:
                if not row.deletion_requested:
                    row.deletion_requested = True
                    row.resource_version = int(row.resource_version) + 1
                logger.debug(
                    f"{LOGICAL_VOLUME} {name} still has finalizers {row.finalizers}, marked for deletion"
                )
            else:
                db.delete(row)
            db.commit()

    # ------------------------------------------------------------------------
    # Reconciler side
    # ------------------------------------------------------------------------

    def set_status(
        self,
        name: str,
        phase: VolumePhase,
        actual_size: Optional[int] = None,
        failure_reason: Optional[str] = None,
    ) -> LogicalVolumeRecord:
        """Record reconciler progress; phase may only leave Pending once."""
        with self._session() as db:
            row = self._find_volume(db, name)
            if row is None:
                raise NotFoundError(LOGICAL_VOLUME, name)

            current = row.phase
            if current not in (None, VolumePhase.PENDING) and current != phase:
                raise ConflictError(
                    LOGICAL_VOLUME,
                    name,
                    f"{LOGICAL_VOLUME} {name} cannot move from phase {current.value} to {phase.value}",
                )

            row.phase = phase
            row.actual_size = actual_size
            row.failure_reason = failure_reason
            row.resource_version = int(row.resource_version) + 1
            db.commit()
            db.refresh(row)
            return _volume_to_record(row)

    def upsert_volume_group(self, record: VolumeGroupRecord) -> VolumeGroupRecord:
        with self._session() as db:
            row = self._find_group(db, record.name)
            if row is None:
                row = VolumeGroup(name=record.name)
                db.add(row)

            row.host_node = record.host_node
            row.total_size = record.total_size
            row.allocated_size = record.allocated_size
            row.labels = dict(record.labels)
            row.thin_pools = [
                ThinPool(name=pool.name, available_space=pool.available_space)
                for pool in record.thin_pools
            ]
            db.commit()
            db.refresh(row)
            return _group_to_record(row)
