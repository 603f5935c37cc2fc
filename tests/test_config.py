import random

import pytest

from coordinator.config import CoordinatorConfig, PollPolicy, RetryPolicy


def test_retry_delay_grows_exponentially_up_to_cap():
    policy = RetryPolicy(attempts=5, base_delay=1.0, max_delay=5.0, multiplier=2.0, jitter=0.0)
    assert [policy.delay(i) for i in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_fixed_delay_is_multiplier_one_without_jitter():
    policy = RetryPolicy(base_delay=1.0, multiplier=1.0, jitter=0.0)
    assert {policy.delay(i) for i in range(4)} == {1.0}


def test_jitter_stays_within_bounds():
    policy = RetryPolicy(base_delay=2.0, multiplier=1.0, jitter=0.25)
    rng = random.Random(7)
    delays = [policy.delay(0, rng) for _ in range(200)]
    assert all(1.5 <= d <= 2.5 for d in delays)
    assert len(set(delays)) > 1


def test_zero_base_delay_never_sleeps():
    assert RetryPolicy(base_delay=0.0).delay(3) == 0.0


@pytest.mark.parametrize("kwargs", [
    {"attempts": 0},
    {"base_delay": -1.0},
    {"jitter": 1.0},
])
def test_retry_policy_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_poll_policy_rejects_bad_values():
    with pytest.raises(ValueError):
        PollPolicy(interval=-0.1)
    with pytest.raises(ValueError):
        PollPolicy(log_every=0)


def test_config_defaults():
    config = CoordinatorConfig()
    assert config.retry.attempts == 3
    assert config.poll.interval == 0.5
    assert config.poll.log_every == 10
    assert config.size_tolerance == "32Mi"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("COORDINATOR_API_ATTEMPTS", "5")
    monkeypatch.setenv("COORDINATOR_API_BASE_DELAY", "0.25")
    monkeypatch.setenv("COORDINATOR_POLL_INTERVAL", "2")
    monkeypatch.setenv("COORDINATOR_FINALIZER", "example.io/protect")
    monkeypatch.setenv("COORDINATOR_SIZE_TOLERANCE", "1Gi")

    config = CoordinatorConfig.from_env()

    assert config.retry.attempts == 5
    assert config.retry.base_delay == 0.25
    assert config.poll.interval == 2.0
    assert config.finalizer_token == "example.io/protect"
    assert config.size_tolerance == "1Gi"


def test_config_from_env_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("COORDINATOR_API_ATTEMPTS", "three")
    monkeypatch.setenv("COORDINATOR_POLL_INTERVAL", "")
    monkeypatch.setenv("COORDINATOR_FINALIZER", "  ")

    config = CoordinatorConfig.from_env()

    assert config.retry.attempts == 3
    assert config.poll.interval == 0.5
    assert config.finalizer_token == "storage.coordinator.io/volume-protection"
