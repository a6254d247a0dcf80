"""Database package — async SQLAlchemy engine, session factory, models and repositories."""
from .engine import get_engine, get_session_factory, get_db_session, dispose_engine
from .base import Base

__all__ = ["get_engine", "get_session_factory", "get_db_session", "dispose_engine", "Base"]
