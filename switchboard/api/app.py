"""FastAPI application factory for the admin API."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from switchboard import __version__
from switchboard.api.dependencies import HealthCheck
from switchboard.api.exceptions import SwitchboardAPIError
from switchboard.api.models import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from switchboard.api.routes import register_routes
from switchboard.conversation.registry import ThreadRegistry
from switchboard.conversation.store import ThreadStore
from switchboard.db.errors import StoreError
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


def create_app(
    registry: ThreadRegistry,
    thread_store: ThreadStore,
    health_checks: dict[str, HealthCheck] | None = None,
) -> FastAPI:
    """Create the admin API.

    Args:
        registry: Registry shared with the message pipeline, so pause and
            resume keep its cache coherent
        thread_store: Store used for turn listings and stats
        health_checks: Named async probes reported by /health
    """
    app = FastAPI(
        title="Switchboard Admin API",
        description="Conversation administration for the Switchboard assistant bridge",
        version=__version__,
    )
    app.state.registry = registry
    app.state.thread_store = thread_store
    app.state.health_checks = health_checks or {}

    _register_exception_handlers(app)
    register_routes(app)

    logger.info("app_created")
    return app


def _error_response(status_code: int, body: ErrorBody) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=body).model_dump(mode="json"),
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SwitchboardAPIError)
    async def api_error_handler(request: Request, exc: SwitchboardAPIError) -> JSONResponse:
        logger.warning(
            "api_error",
            error_code=exc.error_code.value,
            message=exc.message,
            path=request.url.path,
        )
        return _error_response(
            exc.status_code, ErrorBody(code=exc.error_code, message=exc.message)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("validation_error", errors=exc.errors(), path=request.url.path)
        details = [
            ErrorDetail(
                field=".".join(str(loc) for loc in error["loc"]),
                message=error["msg"],
            )
            for error in exc.errors()
        ]
        return _error_response(
            400,
            ErrorBody(
                code=ErrorCode.INVALID_REQUEST,
                message="Request validation failed",
                details=details,
            ),
        )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("store_error", error=str(exc), path=request.url.path)
        return _error_response(
            502,
            ErrorBody(code=ErrorCode.UPSTREAM_ERROR, message="Storage backend unavailable"),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unexpected_error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return _error_response(
            500,
            ErrorBody(code=ErrorCode.INTERNAL_ERROR, message="An unexpected error occurred"),
        )
