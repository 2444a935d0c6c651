"""Upload client: HTTP transport, transfer scheduler and CLI"""
from .api import UploadApiClient, ProgressReader
from .scheduler import (
    TransferScheduler,
    TransferState,
    ClientChunk,
    ProgressSnapshot,
    ChunkUploadFailed,
)

__all__ = [
    "UploadApiClient",
    "ProgressReader",
    "TransferScheduler",
    "TransferState",
    "ClientChunk",
    "ProgressSnapshot",
    "ChunkUploadFailed",
]
