from app.store.base import Store
from app.store.factory import get_store


def store_dep() -> Store:
    return get_store()
