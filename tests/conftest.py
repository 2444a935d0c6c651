"""Pytest configuration and fixtures"""

import io
import os
import zipfile

import pytest

from resumable_upload.core import LockRegistry, build_engine, build_session_factory
from resumable_upload.models import Base
from resumable_upload.services import ChunkSink, Finalizer, SessionStore, UploadService


def make_zip(entries: dict) -> bytes:
    """Build an uncompressed ZIP archive in memory"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def temp_dir(tmp_path):
    """Scratch directory for source files"""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def session_factory(tmp_path):
    """SQLite database with the upload tables"""
    engine = build_engine(f"sqlite:///{tmp_path / 'uploads.db'}")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SessionStore(session_factory)


@pytest.fixture
def sink(tmp_path):
    return ChunkSink(tmp_path / "temp")


@pytest.fixture
def completed_dir(tmp_path):
    return tmp_path / "completed"


@pytest.fixture
def finalizer(store, sink, completed_dir):
    return Finalizer(store, sink, completed_dir, extension=".zip", locks=LockRegistry())


@pytest.fixture
def service(store, sink, finalizer):
    return UploadService(store, sink, finalizer, max_chunk_bytes=10 * 1024 * 1024)


@pytest.fixture
def zip_bytes():
    """A valid archive of roughly 12KB with nested entries"""
    return make_zip({
        "readme.txt": b"hello",
        "data/blob.bin": os.urandom(12 * 1024),
        "data/more.bin": b"x" * 100,
    })


@pytest.fixture
def archive_factory():
    return make_zip
