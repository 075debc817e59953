#main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import CoreError
from middleware import RequestContextMiddleware
from routes.campaigns import router as campaigns_router
from routes.enrollments import router as enrollments_router
from routes.health import router as health_router
from routes.wallet import router as wallet_router
from services.observability import configure_logging
from services.responses import core_error_response, error_response
from settings import validate_env_settings

logger = logging.getLogger("hyprive")


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg") or "Invalid value"
    return f"{loc}: {msg}" if loc else msg


def create_app() -> FastAPI:
    validate_env_settings()
    configure_logging()

    app = FastAPI(title="Hyprive Settlement API", version="1.0.0")
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(enrollments_router)
    app.include_router(campaigns_router)
    app.include_router(wallet_router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(detail, status_code=exc.status_code)

    @app.exception_handler(CoreError)
    async def core_error_handler(request: Request, exc: CoreError):
        return core_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(_first_validation_message(exc), status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return error_response("Internal server error", status_code=500)

    return app


app = create_app()
