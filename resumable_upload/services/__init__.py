"""Services module exports"""
from .session_store import SessionStore, SessionStatus
from .chunk_sink import ChunkSink
from .container import peek_entries, read_top_level_entries, CORRUPT_CONTAINER_ENTRY
from .finalizer import Finalizer, FinalizeResult
from .upload_service import UploadService, build_upload_service, parse_chunk_coordinates

__all__ = [
    "SessionStore",
    "SessionStatus",
    "ChunkSink",
    "peek_entries",
    "read_top_level_entries",
    "CORRUPT_CONTAINER_ENTRY",
    "Finalizer",
    "FinalizeResult",
    "UploadService",
    "build_upload_service",
    "parse_chunk_coordinates",
]
