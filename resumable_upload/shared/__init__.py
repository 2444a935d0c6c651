"""Code shared by the upload client and the server"""
from .errors import (
    UploadError,
    ValidationError,
    SessionNotFound,
    IntegrityMismatch,
    ContainerParseError,
)
from .fingerprint import fingerprint_file, fingerprint_stream, HASH_WINDOW
from .planner import ChunkRange, plan, total_chunks
from .status import ChunkStatus, UploadStatus

__all__ = [
    "UploadError",
    "ValidationError",
    "SessionNotFound",
    "IntegrityMismatch",
    "ContainerParseError",
    "fingerprint_file",
    "fingerprint_stream",
    "HASH_WINDOW",
    "ChunkRange",
    "plan",
    "total_chunks",
    "ChunkStatus",
    "UploadStatus",
]
