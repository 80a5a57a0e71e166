"""Database package."""

from deckstudy.db.base import Base, async_session_maker, engine, init_db

__all__ = ["engine", "async_session_maker", "Base", "init_db"]
