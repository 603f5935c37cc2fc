from collections import defaultdict, deque
from typing import Dict, List, Optional

import pytest

from coordinator.config import CoordinatorConfig, PollPolicy, RetryPolicy
from coordinator.database import create_session_factory, create_store_engine, init_db
from coordinator.errors import AlreadyExistsError, ConflictError, NotFoundError
from coordinator.models import VolumePhase, VolumeType
from coordinator.quantity import parse_quantity
from coordinator.records import (
    LogicalVolumeRecord,
    LogicalVolumeSpec,
    LogicalVolumeStatus,
    ThinPoolStatus,
    VolumeGroupRecord,
)
from coordinator.services.resource_client import ResourceClient
from coordinator.store import LOGICAL_VOLUME, VOLUME_GROUP, DeclarativeStore, SQLStore

GiB = 1024 ** 3
TOKEN = "storage.coordinator.io/volume-protection"


def make_group(name, node, total=0, allocated=0, pools=None) -> VolumeGroupRecord:
    return VolumeGroupRecord(
        name=name,
        host_node=node,
        total_size=total,
        allocated_size=allocated,
        thin_pools=tuple(
            ThinPoolStatus(name=pool, available_space=space) for pool, space in (pools or {}).items()
        ),
    )


def make_volume(name="pvc-1", phase=None, actual_size=None, reason=None,
                finalizers=(TOKEN,), deletion_requested=False, version=1) -> LogicalVolumeRecord:
    status = None
    if phase is not None:
        status = LogicalVolumeStatus(phase=phase, actual_size=actual_size, failure_reason=reason)
    return LogicalVolumeRecord(
        name=name,
        spec=LogicalVolumeSpec(
            volume_type=VolumeType.THIN, requested_size="10Gi", group_name="lvg-a", pool_name="pool1"
        ),
        status=status,
        finalizers=tuple(finalizers),
        deletion_requested=deletion_requested,
        resource_version=version,
    )


class FakeStore(DeclarativeStore):
    """
    In-memory store with the same error semantics as SQLStore.

    fail(method, *errors) queues exceptions raised by the next calls of
    `method`; script_gets(name, records) makes get_logical_volume return the
    given snapshots in order before falling back to the stored record.
    """

    def __init__(self, groups: Optional[List[VolumeGroupRecord]] = None):
        self.groups = list(groups or [])
        self.volumes: Dict[str, LogicalVolumeRecord] = {}
        self.calls: List[str] = []
        self.failures = defaultdict(deque)
        self.scripted_gets = defaultdict(deque)

    def fail(self, method: str, *errors: Exception):
        self.failures[method].extend(errors)

    def script_gets(self, name: str, records: List[LogicalVolumeRecord]):
        self.scripted_gets[name].extend(records)

    def count(self, method: str) -> int:
        return self.calls.count(method)

    def _enter(self, method: str):
        self.calls.append(method)
        if self.failures[method]:
            raise self.failures[method].popleft()

    def list_volume_groups(self):
        self._enter("list_volume_groups")
        return list(self.groups)

    def get_volume_group(self, name):
        self._enter("get_volume_group")
        for group in self.groups:
            if group.name == name:
                return group
        raise NotFoundError(VOLUME_GROUP, name)

    def create_logical_volume(self, record):
        self._enter("create_logical_volume")
        if record.name in self.volumes:
            raise AlreadyExistsError(LOGICAL_VOLUME, record.name)
        stored = record.model_copy(update={"resource_version": 1, "status": None, "deletion_requested": False})
        self.volumes[record.name] = stored
        return stored

    def get_logical_volume(self, name):
        self._enter("get_logical_volume")
        if self.scripted_gets[name]:
            return self.scripted_gets[name].popleft()
        if name not in self.volumes:
            raise NotFoundError(LOGICAL_VOLUME, name)
        return self.volumes[name]

    def list_logical_volumes(self):
        self._enter("list_logical_volumes")
        return list(self.volumes.values())

    def update_logical_volume(self, record):
        self._enter("update_logical_volume")
        current = self.volumes.get(record.name)
        if current is None:
            raise NotFoundError(LOGICAL_VOLUME, record.name)
        if current.resource_version != record.resource_version:
            raise ConflictError(LOGICAL_VOLUME, record.name)
        updated = record.model_copy(update={
            "resource_version": current.resource_version + 1,
            "status": current.status,
            "deletion_requested": current.deletion_requested,
        })
        if updated.deletion_requested and not updated.finalizers:
            del self.volumes[record.name]
        else:
            self.volumes[record.name] = updated
        return updated

    def delete_logical_volume(self, name):
        self._enter("delete_logical_volume")
        current = self.volumes.get(name)
        if current is None:
            raise NotFoundError(LOGICAL_VOLUME, name)
        if current.finalizers:
            self.volumes[name] = current.model_copy(update={
                "deletion_requested": True,
                "resource_version": current.resource_version + 1,
            })
        else:
            del self.volumes[name]

    def put(self, record: LogicalVolumeRecord):
        self.volumes[record.name] = record


class ReconcilingStore(SQLStore):
    """
    SQL store that plays the external reconciler.

    The first read of a new record marks it Pending; once `reads_before_ready`
    reads have happened the record becomes Created (or Failed when
    `failure_reason` is set). The read returning the transition still shows
    the previous state, like a lagging watch cache would.
    """

    def __init__(self, session_factory, reads_before_ready=2, actual_size=None, failure_reason=None):
        super().__init__(session_factory)
        self.reads_before_ready = reads_before_ready
        self.actual_size = actual_size
        self.failure_reason = failure_reason
        self.reads = defaultdict(int)

    def get_logical_volume(self, name):
        record = super().get_logical_volume(name)
        if record.status is None or record.status.phase == VolumePhase.PENDING:
            self.reads[name] += 1
            if self.reads[name] > self.reads_before_ready:
                if self.failure_reason:
                    self.set_status(name, VolumePhase.FAILED, failure_reason=self.failure_reason)
                else:
                    size = self.actual_size or parse_quantity(record.spec.requested_size)
                    self.set_status(name, VolumePhase.CREATED, actual_size=size)
            elif record.status is None:
                self.set_status(name, VolumePhase.PENDING)
        return record


@pytest.fixture
def fast_retry():
    return RetryPolicy(attempts=3, base_delay=0.0, jitter=0.0)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def client(fake_store, fast_retry, sleeps):
    return ResourceClient(fake_store, fast_retry, sleep=sleeps.append)


@pytest.fixture
def test_config():
    return CoordinatorConfig(
        retry=RetryPolicy(attempts=3, base_delay=0.0, jitter=0.0),
        poll=PollPolicy(interval=0.0),
        finalizer_token=TOKEN,
        size_tolerance="1Gi",
        database_url="sqlite://",
    )


@pytest.fixture
def session_factory():
    engine = create_store_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SQLStore(session_factory)
