from __future__ import annotations

import os

from fastapi import APIRouter, Depends

from app.store.base import Store
from deps.store import store_dep

router = APIRouter(tags=["health"])

MIGRATION_REVISION = "0001_baseline_schema"


def _check_migrations(store: Store) -> bool:
    if store.backend != "postgres":
        return True
    try:
        from db import get_conn

        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass('public.alembic_version');")
                exists = cur.fetchone()[0]
                if not exists:
                    return False
                cur.execute("SELECT version_num FROM alembic_version LIMIT 1;")
                row = cur.fetchone()
                return bool(row and row[0])
    except Exception:
        return False


def _resolve_env() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("ENV") or "").strip()


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health(store: Store = Depends(store_dep)):
    return {
        "ok": True,
        "env": _resolve_env(),
        "store": store.backend,
        "git_sha": _resolve_git_sha(),
    }


@router.get("/healthz")
def healthz(store: Store = Depends(store_dep)):
    db_ok, db_error = store.ping()
    return {
        "ok": True,
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "git_sha": _resolve_git_sha(),
        "db_ok": db_ok,
        "db_error": db_error,
    }


@router.get("/readyz")
def readyz(store: Store = Depends(store_dep)):
    db_ok, db_error = store.ping()
    migrations_ok = _check_migrations(store)
    return {
        "ready": bool(db_ok and migrations_ok),
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "git_sha": _resolve_git_sha(),
        "db_ok": db_ok,
        "db_error": db_error,
        "migrations_ok": migrations_ok,
        "migration_revision": MIGRATION_REVISION,
    }
