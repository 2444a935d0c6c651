"""
HTTP transport for the upload protocol
"""
import logging
import os
from typing import Callable, List, Optional

import requests

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api/uploads")
REQUEST_TIMEOUT = float(os.getenv("UPLOAD_REQUEST_TIMEOUT", "60"))

ProgressCallback = Callable[[int], None]


class ProgressReader:
    """
    File-like view over a chunk body that reports bytes handed to the socket.

    requests streams objects with read() and sizes them with len(), so the
    request still carries a Content-Length.
    """

    def __init__(self, data: bytes, on_progress: Optional[ProgressCallback] = None, block_size: int = 64 * 1024):
        self._data = memoryview(data)
        self._position = 0
        self._on_progress = on_progress
        self._block_size = block_size

    def __len__(self) -> int:
        return len(self._data)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = self._block_size
        block = self._data[self._position:self._position + size].tobytes()
        self._position += len(block)
        if block and self._on_progress:
            self._on_progress(self._position)
        return block


class UploadApiClient:
    """Calls the handshake, chunk, finalize and status endpoints"""

    def __init__(self, api_url: str = API_BASE_URL, session: Optional[requests.Session] = None,
                 timeout: float = REQUEST_TIMEOUT):
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def handshake(self, filename: str, total_size: int, total_chunks: int, file_hash: str) -> dict:
        response = self.session.post(
            f"{self.api_url}/handshake",
            json={
                "filename": filename,
                "totalSize": total_size,
                "totalChunks": total_chunks,
                "fileHash": file_hash,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def upload_chunk(self, upload_id: str, index: int, offset: int, data: bytes,
                     on_progress: Optional[ProgressCallback] = None) -> dict:
        response = self.session.put(
            f"{self.api_url}/{upload_id}/chunk",
            data=ProgressReader(data, on_progress),
            headers={
                "Content-Type": "application/octet-stream",
                "X-Chunk-Index": str(index),
                "X-Chunk-Offset": str(offset),
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def finalize(self, upload_id: str, file_hash: str) -> dict:
        response = self.session.post(
            f"{self.api_url}/{upload_id}/finalize",
            json={"fileHash": file_hash},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def status(self, upload_id: str) -> dict:
        response = self.session.get(f"{self.api_url}/{upload_id}/status", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def completed_chunks(self, upload_id: str) -> List[int]:
        return list(self.status(upload_id).get("completedChunkIndexes", []))
