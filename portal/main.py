import logging

import uvicorn
from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from portal.api.schemas import HealthOut, ProblemOut, ReadyOut
from portal.common.config import get_settings
from portal.common.logging import setup_logging
from portal.context import PortalContext, build_context, run_startup_checks
from portal.infra.observability.metrics import metrics_app
from portal.infra.storage import (
    AccessError,
    NotFoundError,
    RemoteOperationError,
    StorageError,
    ValidationError,
)

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    403: "forbidden",
    404: "not_found",
    500: "internal_error",
    502: "bad_gateway",
}


def _status_for_storage_error(exc: StorageError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, AccessError):
        return 403
    if isinstance(exc, RemoteOperationError):
        return 502
    return 500


def _resolve_error_code(status_code: int) -> str:
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def get_context(request: Request) -> PortalContext:
    return request.app.state.context


def create_app(context: PortalContext | None = None) -> FastAPI:
    settings = context.settings if context is not None else get_settings()
    setup_logging()
    ctx = context or build_context(settings)
    app = FastAPI(
        title="Portal Storage Service",
        version="1.0",
        description="Object storage facade and database pool health surface",
    )
    app.state.context = ctx

    if settings.ENABLE_METRICS:
        app.mount("/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        if settings.STARTUP_CHECKS:
            run_startup_checks(ctx)

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        ctx.close()

    @app.exception_handler(StorageError)
    async def storage_exception_handler(request: Request, exc: StorageError):
        logger = logging.getLogger("http")
        status_code = _status_for_storage_error(exc)
        logger.log(
            logging.WARNING if status_code < 500 else logging.ERROR,
            "storage_exception status=%s detail=%s method=%s path=%s request_id=%s",
            status_code,
            exc,
            request.method,
            request.url.path,
            request.headers.get("X-Request-Id"),
            extra={
                "extra": {
                    "status": status_code,
                    "detail": str(exc),
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                }
            },
        )
        problem = ProblemOut(
            title="Storage Error",
            status=status_code,
            detail=str(exc),
            error_code=_resolve_error_code(status_code),
            instance=str(request.url),
            request_id=request.headers.get("X-Request-Id"),
        )
        return JSONResponse(
            status_code=status_code,
            media_type="application/problem+json",
            content=problem.model_dump(),
        )

    @app.get("/health", response_model=HealthOut)
    def health(response: Response, ctx: PortalContext = Depends(get_context)):
        status = ctx.storage.health_check()
        if not status.healthy:
            response.status_code = 503
        return HealthOut.model_validate(status)

    @app.get("/ready", response_model=ReadyOut)
    def ready(ctx: PortalContext = Depends(get_context)):
        if not ctx.db.check():
            return ReadyOut(status="not_ready", detail={"db": "unreachable"})
        return ReadyOut(status="ready", pool=ctx.db.status())

    return app


if __name__ == "__main__":
    uvicorn.run("portal.main:create_app", factory=True, host="0.0.0.0", port=8000)
