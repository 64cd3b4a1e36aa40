# hybridfs/main.py
"""
FastAPI app exposing file manager health, with request-id propagation.
"""
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hybridfs.api.admin.health import router as health_router
from hybridfs.config import settings
from hybridfs.file_access.manager import create_manager
from hybridfs.monitoring.context import set_request_context
from hybridfs.monitoring.logger import log


@asynccontextmanager
async def lifespan(app: FastAPI):
    manager = create_manager(settings)
    await manager.initialize()
    app.state.manager = manager
    log("INFO", f"hybridfs started with provider {manager.provider.value}", module="main")
    try:
        yield
    finally:
        await manager.close()
        app.state.manager = None
        log("INFO", "hybridfs stopped", module="main")


app = FastAPI(title="hybridfs", lifespan=lifespan)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    request.state.request_id = request_id
    set_request_context(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None)
    log(
        "ERROR",
        f"Unhandled exception: {exc}",
        module="main",
        request_id=request_id
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "request_id": request_id,
            "detail": "An unexpected error occurred."
        }
    )


app.include_router(health_router)
