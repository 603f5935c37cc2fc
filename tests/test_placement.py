import pytest

from conftest import GiB, make_group
from coordinator.errors import NoEligibleTarget
from coordinator.models import VolumeType
from coordinator.services.placement import select_group_for_node
from coordinator.services.spec_builder import build_spec


def test_select_group_for_node_returns_first_match():
    groups = [
        make_group("lvg-a", "node1"),
        make_group("lvg-b", "node2"),
        make_group("lvg-c", "node2"),
    ]
    assert select_group_for_node(groups, "node2").name == "lvg-b"


def test_select_group_for_node_without_match():
    with pytest.raises(NoEligibleTarget) as excinfo:
        select_group_for_node([make_group("lvg-a", "node1")], "node7")
    assert "node7" in str(excinfo.value)


def test_thin_spec_names_pool_from_selector():
    group = make_group("lvg-b", "node2", pools={"pool1": 12 * GiB})

    spec = build_spec("pvc-1", group, {"lvg-a": "pool0", "lvg-b": "pool1"}, VolumeType.THIN, 10 * GiB, True)

    assert spec.volume_type == VolumeType.THIN
    assert spec.group_name == "lvg-b"
    assert spec.pool_name == "pool1"
    assert spec.requested_size == "10Gi"
    assert spec.contiguous is None


def test_thick_contiguous_is_set_only_when_requested():
    group = make_group("lvg-a", "node1", total=100 * GiB)

    contiguous = build_spec("pvc-1", group, {"lvg-a": ""}, VolumeType.THICK, 10 * GiB, True)
    plain = build_spec("pvc-1", group, {"lvg-a": ""}, VolumeType.THICK, 10 * GiB, False)

    assert contiguous.contiguous is True
    assert plain.contiguous is None
    assert "contiguous" not in plain.model_dump(exclude_none=True)
    assert plain.pool_name is None
