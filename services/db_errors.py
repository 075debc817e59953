# services/db_errors.py
from __future__ import annotations

import logging

from app.errors import ConflictError, CoreError, InternalError

logger = logging.getLogger("hyprive.store")

# SQLSTATE -> business error; everything else from the driver is internal
PG_CONFLICT_CODES: dict[str, str] = {
    "40001": "serialization_failure",
    "40P01": "deadlock_detected",
    "55P03": "lock_not_available",
    "23505": "unique_violation",
}


def _pgcode(exc: Exception) -> str | None:
    code = getattr(exc, "pgcode", None)
    if isinstance(code, str) and code:
        return code
    diag = getattr(exc, "diag", None)
    code = getattr(diag, "sqlstate", None) if diag is not None else None
    return code if isinstance(code, str) and code else None


def _is_driver_error(exc: Exception) -> bool:
    return type(exc).__module__.split(".", 1)[0] == "psycopg2"


def classify_db_error(exc: Exception) -> CoreError | None:
    """
    Map a driver exception to a business error.
    Returns None when exc is not a database error (callers re-raise it as is).
    """
    if isinstance(exc, CoreError):
        return None

    code = _pgcode(exc)
    if code in PG_CONFLICT_CODES:
        return ConflictError()

    if code or _is_driver_error(exc):
        return InternalError()

    return None


def raise_core_from_db_error(exc: Exception) -> None:
    """
    Convert known DB errors into core errors; other exceptions are left to the caller.
    """
    mapped = classify_db_error(exc)
    if mapped is None:
        return

    if isinstance(mapped, ConflictError):
        logger.info("db conflict sqlstate=%s kind=%s", _pgcode(exc), PG_CONFLICT_CODES.get(_pgcode(exc) or ""))
    else:
        logger.error("db error %s: %s", type(exc).__name__, exc)
    raise mapped from exc
