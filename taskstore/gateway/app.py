from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from fastapi import Body, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from taskstore.errors import TaskNotFoundError, TaskStoreError
from taskstore.observability import (
    configure_uvicorn_logging,
    get_json_logger,
    get_metrics,
    use_request_context,
)
from taskstore.service import TaskService

LIVENESS_TEXT = "TaskStore backend working"


def create_app(service: TaskService, *, cors_origins: Sequence[str] | None = None) -> FastAPI:
    app = FastAPI(title="taskstore")
    # Configure uvicorn logging at app creation to avoid import-time side effects
    configure_uvicorn_logging()
    logger = get_json_logger("taskstore.gateway")
    metrics = get_metrics()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins or ["*"]),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _request_context(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        started = time.perf_counter()
        with use_request_context(request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                # Failures outside the taskstore taxonomy still answer with the JSON error shape
                response = _error_response(request, exc)
            logger.info(
                "request",
                extra={
                    "event": "http_request",
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000.0, 3),
                },
            )
        response.headers["X-Request-ID"] = request_id
        return response

    # ----------------------------
    # Error mapping
    # ----------------------------

    @app.exception_handler(TaskNotFoundError)
    async def _task_not_found(request: Request, exc: TaskNotFoundError) -> JSONResponse:
        logger.info(
            "task not found",
            extra={"event": "task_not_found", "task_id": exc.task_id, "path": request.url.path},
        )
        return JSONResponse(status_code=404, content={"error": str(exc)})

    def _error_response(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request failed",
            extra={
                "event": "gateway_error",
                "method": request.method,
                "path": request.url.path,
                "attributes": {"error_type": type(exc).__name__, "error": str(exc)[:200]},
            },
            exc_info=None if isinstance(exc, TaskStoreError) else exc,
        )
        metrics.increment("taskstore_errors", {"error": type(exc).__name__})
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(TaskStoreError)
    async def _store_error(request: Request, exc: TaskStoreError) -> JSONResponse:
        return _error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = str(errors[0].get("msg", "invalid request")) if errors else "invalid request"
        return JSONResponse(status_code=422, content={"error": message})

    # ----------------------------
    # Routes
    # ----------------------------

    @app.get("/", response_class=PlainTextResponse)
    async def liveness() -> str:
        return LIVENESS_TEXT

    @app.get("/health")
    async def health() -> dict[str, str]:  # lightweight healthcheck endpoint
        return {"status": "ok"}

    @app.get("/ready", response_model=None)
    async def ready() -> dict[str, str] | JSONResponse:
        try:
            # Probe read of the collection validates credentials, bucket and contents
            await service.read_collection()
        except TaskStoreError as exc:
            logger.error(
                "store not ready",
                extra={
                    "event": "gateway_error",
                    "path": "/ready",
                    "attributes": {"error": str(exc)[:200]},
                },
            )
            metrics.increment("taskstore_ready_errors", {})
            return JSONResponse(status_code=503, content={"error": "store not ready"})
        return {"status": "ok"}

    @app.get("/tasks")
    async def list_tasks() -> list[dict[str, Any]]:
        return [t.to_json() for t in await service.list_tasks()]

    @app.post("/tasks")
    async def create_task(
        fields: dict[str, Any] | None = Body(default=None),
    ) -> dict[str, Any]:
        task = await service.create_task(fields or {})
        return task.to_json()

    @app.put("/tasks/{task_id}")
    async def update_task(
        task_id: str, fields: dict[str, Any] | None = Body(default=None)
    ) -> dict[str, Any]:
        task = await service.update_task(task_id, fields or {})
        return task.to_json()

    @app.delete("/tasks/{task_id}")
    async def delete_task(task_id: str) -> dict[str, str]:
        await service.delete_task(task_id)
        return {"message": "Task deleted"}

    return app


__all__ = ["create_app", "LIVENESS_TEXT"]
