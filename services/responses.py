# services/responses.py
from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.errors import CoreError, Result

HTTP_ERROR_CODES: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return data


def success_response(data: Any, status_code: int = 200, meta: Optional[dict] = None) -> JSONResponse:
    content: dict[str, Any] = {"success": True, "data": _dump(data)}
    if meta:
        content["meta"] = meta
    return JSONResponse(status_code=status_code, content=content)


def error_response(error: str, status_code: int = 400, code: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error,
            "code": code or HTTP_ERROR_CODES.get(status_code, "ERROR"),
        },
    )


def core_error_response(err: CoreError) -> JSONResponse:
    return JSONResponse(status_code=err.status, content=err.as_dict())


def respond(
    result: Result,
    serialize: Callable[[Any], Any] = lambda v: v,
    status_code: int = 200,
) -> JSONResponse:
    """Render an operation Result into the {success, data | error} envelope."""
    if not result.ok:
        return core_error_response(result.error)
    return success_response(serialize(result.value), status_code=status_code)
