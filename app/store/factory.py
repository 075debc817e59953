# app/store/factory.py
from __future__ import annotations

import logging
from typing import Optional

from app.store.base import Store
from settings import settings

logger = logging.getLogger("hyprive.store")

_STORE: Optional[Store] = None


def build_store(backend: str | None = None) -> Store:
    key = (backend or settings.STORE_BACKEND or "memory").strip().lower()

    if key == "memory":
        from app.store.memory import MemoryStore
        return MemoryStore()

    if key in ("postgres", "postgresql"):
        from app.store.postgres import PostgresStore
        return PostgresStore()

    raise ValueError(f"Unknown store backend: {backend!r}")


def get_store() -> Store:
    global _STORE
    if _STORE is None:
        _STORE = build_store()
        logger.info("store initialised backend=%s", _STORE.backend)
    return _STORE


def set_store(store: Optional[Store]) -> None:
    global _STORE
    _STORE = store
