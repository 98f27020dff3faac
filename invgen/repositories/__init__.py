from sqlalchemy.ext.asyncio import AsyncSession

from invgen.repositories.base import DataStore
from invgen.repositories.sql import SQLDataStore

BACKENDS = {
    "sql": SQLDataStore,
}


def build_store(backend: str, db: AsyncSession) -> DataStore:
    try:
        store_class = BACKENDS[backend]
    except KeyError:
        raise ValueError(f"Unknown persistence backend: {backend}") from None
    return store_class(db)


__all__ = ["DataStore", "SQLDataStore", "BACKENDS", "build_store"]
