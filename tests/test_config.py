"""Settings and metrics collaborator tests."""

import pytest
from pydantic import ValidationError

from tokenmeta.core.config import Settings
from tokenmeta.core.metrics import Metrics


def test_defaults():
    settings = Settings(APP_ENV="test")

    assert settings.max_retry_count_on_error == 3
    assert settings.resolve_timeout_seconds == 30.0
    assert settings.ipfs_gateways_list == ["ipfs.io", "cloudflare-ipfs.com"]


def test_invalid_config_fails_fast_outside_tests():
    with pytest.raises(ValidationError) as exc_info:
        Settings(APP_ENV="production", IPFS_GATEWAYS=" , ", MAX_RETRY_COUNT_ON_ERROR=0)

    message = str(exc_info.value)
    assert "IPFS_GATEWAYS" in message
    assert "MAX_RETRY_COUNT_ON_ERROR" in message


def test_validation_skipped_in_test_env():
    settings = Settings(APP_ENV="test", IPFS_GATEWAYS="", MAX_RETRY_COUNT_ON_ERROR=0)

    assert settings.ipfs_gateways_list == []


def test_metrics_are_isolated_per_instance():
    first = Metrics()
    second = Metrics()

    first.record_status("token", "applied")
    first.record_error("timeout")

    assert first.get_status_count("token", "applied") == 1
    assert first.get_error_count("timeout") == 1
    assert second.get_status_count("token", "applied") == 0


def test_metrics_never_raise():
    metrics = Metrics()

    class Broken:
        def labels(self, **kw):
            raise ValueError("broken collector")

    metrics.actions = Broken()
    metrics.errors = Broken()

    metrics.record_status("token", "applied")
    metrics.record_error("timeout")
