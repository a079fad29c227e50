"""Database engine and session helpers."""

from slabline.db.session import AsyncSessionLocal, engine, get_db, get_db_context

__all__ = [
    "AsyncSessionLocal",
    "engine",
    "get_db",
    "get_db_context",
]
