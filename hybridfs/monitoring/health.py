# hybridfs/monitoring/health.py
"""
Provider status tracking and health checks.

StatusMonitor owns the {provider, ready, error} triple shown to users and
records why each provider in the fallback chain was or wasn't selected.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hybridfs.file_access.base import FileStorageProvider, HealthCheckResult, ProviderName
from hybridfs.monitoring.logger import log


@dataclass
class ProviderAttempt:
    """Outcome of one provider in the fallback chain."""
    provider: ProviderName
    outcome: str  # 'ready' | 'skipped' | 'timeout' | 'connection_error' | 'protocol_error'
    error: Optional[str] = None


@dataclass
class ProviderStatus:
    provider: Optional[ProviderName] = None
    ready: bool = False
    error: Optional[str] = None
    attempts: List[ProviderAttempt] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value if self.provider else None,
            "ready": self.ready,
            "error": self.error,
            "attempts": [
                {"provider": a.provider.value, "outcome": a.outcome, "error": a.error}
                for a in self.attempts
            ],
        }


class StatusMonitor:
    """
    Readiness tracking for the active provider.

    The manager drives the lifecycle transitions (reset/attempt/ready);
    check() is the read-only liveness probe and only ever touches `error`.
    """

    def __init__(self) -> None:
        self.status = ProviderStatus()

    def reset(self) -> None:
        self.status = ProviderStatus()

    def record_attempt(self, provider: ProviderName, outcome: str, error: Optional[str] = None) -> None:
        self.status.attempts.append(ProviderAttempt(provider, outcome, error))

    def mark_ready(self, provider: ProviderName) -> None:
        self.status.provider = provider
        self.status.ready = True
        self.status.error = None
        self.record_attempt(provider, "ready")

    async def check(self, adapter: Optional[FileStorageProvider]) -> HealthCheckResult:
        """
        Probe the active provider with a listing of "/".

        Returns:
            HealthCheckResult; `healthy` is False when the manager is not
            ready, the adapter is flagged unhealthy, or the listing fails.
        """
        provider = self.status.provider.value if self.status.provider else None

        if adapter is None or not self.status.ready:
            return HealthCheckResult(healthy=False, message="File manager not ready", provider=provider)

        if not adapter.healthy:
            message = f"{provider} provider flagged unhealthy after a protocol error"
            self.status.error = message
            log("WARNING", message, module="health", provider=provider)
            return HealthCheckResult(healthy=False, message=message, provider=provider)

        start = time.perf_counter()
        try:
            entries = await adapter.readdir("/")
        except Exception as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            message = f"Health check failed: {exc}"
            self.status.error = message
            log("WARNING", message, module="health", provider=provider)
            return HealthCheckResult(
                healthy=False,
                message=message,
                provider=provider,
                latency_ms=latency_ms,
                details={"error": str(exc)},
            )

        latency_ms = (time.perf_counter() - start) * 1000
        self.status.error = None
        return HealthCheckResult(
            healthy=True,
            message=f"{provider} provider healthy",
            provider=provider,
            latency_ms=latency_ms,
            details={"root_entries": len(entries)},
        )
