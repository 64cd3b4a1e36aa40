# hybridfs/api/admin/health.py
"""
Health endpoints for shallow and deep readiness checks.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.status import HTTP_200_OK, HTTP_503_SERVICE_UNAVAILABLE

from hybridfs import __version__
from hybridfs.file_access.manager import HybridFileManager

router = APIRouter(prefix="/admin", tags=["health"])


def get_manager(request: Request) -> HybridFileManager:
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail="File manager not configured")
    return manager


@router.get("/health", status_code=HTTP_200_OK)
async def health() -> dict:
    """Shallow health endpoint."""
    return {"status": "ok", "version": __version__}


@router.get("/health/deep", status_code=HTTP_200_OK)
async def health_deep(manager: HybridFileManager = Depends(get_manager)) -> dict:
    """
    Deep health endpoint: provider status plus a live listing of "/"
    against the active provider.
    """
    report = await manager.health_report()

    result = {
        "status": "ready" if report.healthy else "degraded",
        "file_manager": manager.status.as_dict(),
        "check": {
            "healthy": report.healthy,
            "message": report.message,
            "latency_ms": report.latency_ms,
            "details": report.details,
        },
    }

    if not report.healthy:
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@router.get("/ready", status_code=HTTP_200_OK)
async def ready(manager: HybridFileManager = Depends(get_manager)) -> dict:
    """Readiness for deployment probes: the manager has selected a provider."""
    if not manager.is_ready:
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail="Not ready")
    return {"status": "ready", "provider": manager.provider.value}
