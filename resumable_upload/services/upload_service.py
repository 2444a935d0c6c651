"""
Server-side upload protocol: handshake, chunk receipt, finalize and status
"""
import logging
from pathlib import Path
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from ..core.config import Settings
from ..core.locks import LockRegistry
from ..models import UploadSession
from ..shared.errors import SessionNotFound, ValidationError
from ..shared.status import ChunkStatus, UploadStatus
from .chunk_sink import ChunkSink
from .finalizer import FinalizeResult, Finalizer
from .session_store import SessionStatus, SessionStore

logger = logging.getLogger(__name__)


def parse_chunk_coordinates(index: Optional[str], offset: Optional[str]) -> tuple[int, int]:
    """Parse the X-Chunk-Index / X-Chunk-Offset header values."""
    try:
        return int(index), int(offset)
    except (TypeError, ValueError):
        raise ValidationError("Missing Chunk Headers")


class UploadService:
    """Business logic behind the upload endpoints"""

    def __init__(self, store: SessionStore, sink: ChunkSink, finalizer: Finalizer, max_chunk_bytes: int):
        self.store = store
        self.sink = sink
        self.finalizer = finalizer
        self.max_chunk_bytes = max_chunk_bytes

    def handshake(self, filename: str, total_size: int, total_chunks: int, file_hash: str) -> UploadSession:
        """
        Open a new session.

        A finished session with the same size and fingerprint is looked up and
        logged, but a fresh session is always created.
        """
        if total_chunks == 0 and total_size != 0:
            raise ValidationError("A non-empty file needs at least one chunk")
        if total_chunks > total_size and total_size > 0:
            raise ValidationError(f"{total_chunks} chunks cannot cover {total_size} bytes")

        existing = self.store.find_existing(total_size, file_hash)
        if existing is not None:
            logger.info(f"Session {existing.id} already holds {file_hash}; starting a new session anyway")

        upload = self.store.create_session(filename, total_size, total_chunks)
        self.sink.prepare(upload.id)
        return upload

    def receive_chunk(self, upload_id: str, index: int, offset: int, data: bytes) -> None:
        """
        Write one chunk and record it as SUCCESS.

        The record is only written after the bytes are on disk; an OSError from
        the sink propagates and leaves the chunk unrecorded.
        """
        upload = self.store.get_session(upload_id)
        if upload is None:
            raise SessionNotFound(upload_id)
        if upload.upload_status.is_terminal:
            raise ValidationError(f"Upload session is {upload.status}")

        if not 0 <= index < upload.total_chunks:
            raise ValidationError(f"Invalid chunk index {index}. Must be between 0 and {upload.total_chunks - 1}")
        if len(data) > self.max_chunk_bytes:
            raise ValidationError(f"Chunk of {len(data)} bytes exceeds limit of {self.max_chunk_bytes}")
        if offset < 0 or offset + len(data) > upload.total_size:
            raise ValidationError(
                f"Byte range [{offset}, {offset + len(data)}) is outside the file size {upload.total_size}"
            )

        self.sink.write(upload_id, index, data, offset)
        self.store.record_chunk(upload_id, index, len(data), ChunkStatus.SUCCESS)

        logger.info(f"Uploaded chunk {index + 1}/{upload.total_chunks} for session {upload_id}")

    def finalize(self, upload_id: str, file_hash: str) -> FinalizeResult:
        status = self.get_status(upload_id)
        if not status.session.upload_status.is_terminal:
            missing = status.missing_chunk_indexes
            if missing:
                logger.info(f"Missing chunks for session {upload_id}: {missing}")
                raise ValidationError(f"Missing chunks: {missing}")

        return self.finalizer.finalize(upload_id, file_hash)

    def get_status(self, upload_id: str) -> SessionStatus:
        status = self.store.get_status(upload_id)
        if status is None:
            raise SessionNotFound(upload_id)
        return status

    def list_sessions(self, status: Optional[UploadStatus] = None) -> List[UploadSession]:
        return self.store.list_sessions(status)


def build_upload_service(
    settings: Settings,
    session_factory: sessionmaker,
    locks: Optional[LockRegistry] = None,
) -> UploadService:
    """Wire the store, sink and finalizer from settings."""
    store = SessionStore(session_factory)
    sink = ChunkSink(Path(settings.TEMP_UPLOAD_DIR))
    finalizer = Finalizer(
        store,
        sink,
        Path(settings.COMPLETED_UPLOAD_DIR),
        extension=settings.CONTAINER_EXTENSION,
        locks=locks,
    )
    return UploadService(store, sink, finalizer, settings.MAX_CHUNK_BYTES)
