import logging

import pytest

from conftest import GiB, ReconcilingStore, make_group
from coordinator import logic
from coordinator.cancellation import CancelToken
from coordinator.errors import NotFoundError
from coordinator.models import VolumeType
from coordinator.records import ProvisioningRequest
from coordinator.store import SQLStore
from shared.logging_config import setup_logging


def test_build_coordinator_defaults_to_sql_store(test_config):
    coordinator = logic.build_coordinator(config=test_config)

    assert isinstance(coordinator.client.store, SQLStore)
    assert coordinator.finalizer_token == test_config.finalizer_token
    assert coordinator.default_tolerance == GiB


def test_module_level_operations(session_factory, test_config):
    store = ReconcilingStore(session_factory, reads_before_ready=0)
    store.upsert_volume_group(make_group("lvg-a", "node1", total=40 * GiB))
    coordinator = logic.build_coordinator(store=store, config=test_config)
    request = ProvisioningRequest(
        name="pvc-1", desired_size="4Gi", volume_type=VolumeType.THICK, eligible_groups={"lvg-a": ""}
    )

    assert logic.provision_volume(request, timeout_seconds=10, coordinator=coordinator) == ("node1", "pvc-1")
    assert logic.expand_volume("pvc-1", "8Gi", coordinator=coordinator).spec.requested_size == "8Gi"

    logic.deprovision_volume("pvc-1", coordinator=coordinator)
    with pytest.raises(NotFoundError):
        store.get_logical_volume("pvc-1")


def test_cancel_token_wait_returns_early_once_canceled():
    token = CancelToken()
    token.cancel()
    assert token.wait(60) is True
    assert token.reason == "canceled by caller"


def test_cancel_token_deadline_caps_wait():
    token = CancelToken.with_timeout(0.01)
    assert token.wait(60) is True
    assert token.expired and not token.canceled
    assert token.reason == "deadline exceeded"


def test_cancel_token_without_deadline():
    token = CancelToken()
    assert token.remaining() is None
    assert token.wait(0) is False
    assert token.reason is None


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "coordinator.log"

    logger = setup_logging("coordinator", level="debug", log_file=str(log_file))
    logging.getLogger("coordinator.services.capacity").debug("probe line")
    for handler in list(logging.getLogger().handlers):
        handler.flush()
        if isinstance(handler, logging.FileHandler):
            logging.getLogger().removeHandler(handler)
            handler.close()

    assert logger.name == "coordinator"
    assert logging.getLogger().level == logging.DEBUG
    content = log_file.read_text()
    assert "[COORDINATOR]" in content
    assert "probe line" in content
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_setup_logging_unknown_level_falls_back_to_info():
    setup_logging("coordinator", level="chatty")
    assert logging.getLogger().level == logging.INFO
