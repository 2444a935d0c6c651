"""
Database connection and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite connections are shared across request threads."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = build_session_factory(engine)
