"""
Status values shared by the wire protocol, the server tables and the client.
"""
from enum import Enum


class UploadStatus(str, Enum):
    """Server-side lifecycle of an upload session"""
    UPLOADING = "UPLOADING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not UploadStatus.UPLOADING


class ChunkStatus(str, Enum):
    """Receipt status of one chunk (PENDING means no record yet)"""
    PENDING = "PENDING"
    UPLOADING = "UPLOADING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
