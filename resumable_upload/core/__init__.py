"""Core module exports"""
from .config import settings, Settings
from .database import engine, SessionLocal, build_engine, build_session_factory
from .locks import LockRegistry, StripedLock, upload_locks

__all__ = [
    "settings",
    "Settings",
    "engine",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "LockRegistry",
    "StripedLock",
    "upload_locks",
]
