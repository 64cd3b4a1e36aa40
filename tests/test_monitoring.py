import json
import logging

import pytest

from hybridfs.file_access.base import HealthCheckResult, ProviderName
from hybridfs.file_access.local_provider import LocalFileSystem
from hybridfs.monitoring.context import get_request_context, set_request_context
from hybridfs.monitoring.health import StatusMonitor
from hybridfs.monitoring.logger import JsonFormatter, log


def test_logger_context_injection():
    # Ensure log() doesn't crash when context is missing
    log('INFO', 'test message', component='test')


def test_log_accepts_module_and_reserved_kwargs():
    # 'module' maps to component; reserved LogRecord names are dropped
    log('DEBUG', 'message', module='manager', name='ignored', path='/a.txt')


def test_json_formatter_fields():
    record = logging.LogRecord("hybridfs", logging.WARNING, __file__, 1, "disk %s", ("full",), None)
    record.component = "health"
    record.provider = "local"
    record.request_id = None
    record.session_id = None
    record.path = "/a.txt"

    data = json.loads(JsonFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["message"] == "disk full"
    assert data["component"] == "health"
    assert data["provider"] == "local"
    assert data["context"] == {"path": "/a.txt"}


def test_request_context_roundtrip():
    set_request_context(request_id="rid-1", provider="local")
    ctx = get_request_context()
    assert ctx["request_id"] == "rid-1"
    assert ctx["provider"] == "local"


class TestStatusMonitor:

    def test_attempts_and_ready(self):
        monitor = StatusMonitor()
        monitor.record_attempt(ProviderName.REMOTE_CLOUD, "timeout", "slow")
        monitor.mark_ready(ProviderName.LOCAL)

        assert monitor.status.as_dict() == {
            "provider": "local",
            "ready": True,
            "error": None,
            "attempts": [
                {"provider": "remote-cloud", "outcome": "timeout", "error": "slow"},
                {"provider": "local", "outcome": "ready", "error": None},
            ],
        }

        monitor.reset()
        assert monitor.status.provider is None
        assert monitor.status.attempts == []

    @pytest.mark.asyncio
    async def test_check_without_adapter(self):
        result = await StatusMonitor().check(None)
        assert isinstance(result, HealthCheckResult)
        assert result.healthy is False

    @pytest.mark.asyncio
    async def test_check_only_touches_error(self):
        monitor = StatusMonitor()
        monitor.mark_ready(ProviderName.LOCAL)
        adapter = LocalFileSystem(files={})

        result = await monitor.check(adapter)
        assert result.healthy is True
        assert result.provider == "local"

        adapter.mark_unhealthy()
        result = await monitor.check(adapter)
        assert result.healthy is False
        assert monitor.status.error
        assert monitor.status.ready is True
        assert monitor.status.provider is ProviderName.LOCAL
