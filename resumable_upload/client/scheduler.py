"""
Client-side transfer scheduler.

Drives one file through the upload protocol:

    IDLE -> HASHING -> UPLOADING -> COMPLETED
                         |  ^   \
                   pause |  | resume -> FAILED
                         v  |
                        PAUSED

Pending chunks are dispatched in index order to a pool of MAX_WORKERS threads.
Each worker checks the shared state before it starts a chunk, so pause (and a
failure elsewhere) stops new dispatches while chunks already in flight finish
their current attempt.
"""
import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from ..shared.errors import IntegrityMismatch
from ..shared.fingerprint import HASH_WINDOW, fingerprint_file
from ..shared.planner import ChunkRange, plan
from ..shared.status import ChunkStatus
from .api import UploadApiClient

logger = logging.getLogger(__name__)

CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", str(5 * 1024 * 1024)))  # 5MB
MAX_WORKERS = 3
MAX_RETRIES = 3
BACKOFF_BASE = 1.0  # seconds; wait is BACKOFF_BASE * 2**attempts


class TransferState(str, Enum):
    IDLE = "IDLE"
    HASHING = "HASHING"
    UPLOADING = "UPLOADING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class ClientChunk:
    """Client-local view of one planned chunk"""
    index: int
    start: int
    end: int
    status: ChunkStatus = ChunkStatus.PENDING
    progress: int = 0  # bytes acknowledged during the current attempt
    retry_count: int = 0

    @classmethod
    def from_range(cls, chunk_range: ChunkRange) -> "ClientChunk":
        return cls(index=chunk_range.index, start=chunk_range.start, end=chunk_range.end)

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass
class ProgressSnapshot:
    uploaded_bytes: int
    total_bytes: int
    speed: float  # bytes per second
    eta: float  # seconds, 0 when speed is 0

    @property
    def percent(self) -> float:
        if self.total_bytes == 0:
            return 100.0
        return self.uploaded_bytes / self.total_bytes * 100


class ChunkUploadFailed(Exception):
    """A chunk exhausted its retries"""

    def __init__(self, index: int, attempts: int, cause: Exception):
        super().__init__(f"Chunk {index} failed after {attempts} attempts: {cause}")
        self.index = index
        self.attempts = attempts
        self.cause = cause


class TransferScheduler:
    """Uploads one selected file in retryable chunks."""

    def __init__(
        self,
        api: Optional[UploadApiClient] = None,
        chunk_size: int = CHUNK_SIZE,
        max_workers: int = MAX_WORKERS,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        hash_window: int = HASH_WINDOW,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Optional[Callable[[ProgressSnapshot], None]] = None,
    ):
        self.api = api or UploadApiClient()
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.hash_window = hash_window
        self._sleep = sleep
        self._clock = clock
        self._on_progress = on_progress

        self._lock = threading.RLock()
        self.state = TransferState.IDLE
        self.file_path: Optional[Path] = None
        self.total_size = 0
        self.chunks: List[ClientChunk] = []
        self.upload_id: Optional[str] = None
        self.file_hash: Optional[str] = None
        self.started_at: Optional[float] = None
        self.final_hash: Optional[str] = None
        self.files_in_container: List[str] = []
        self.error: Optional[Exception] = None

    # ------------------------------------------------------------------
    # File selection and session setup
    # ------------------------------------------------------------------

    def select_file(self, file_path: Union[str, Path]) -> None:
        """Reset to IDLE with a fresh chunk plan for `file_path`."""
        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")

        total_size = file_path.stat().st_size
        with self._lock:
            self.state = TransferState.IDLE
            self.file_path = file_path
            self.total_size = total_size
            self.chunks = [ClientChunk.from_range(r) for r in plan(total_size, self.chunk_size)]
            self.upload_id = None
            self.file_hash = None
            self.started_at = None
            self.final_hash = None
            self.files_in_container = []
            self.error = None

        logger.info(f"Selected {file_path.name} ({total_size} bytes, {len(self.chunks)} chunks)")

    def adopt_session(self, upload_id: str) -> List[int]:
        """
        Continue an existing server session instead of opening a new one.

        Chunks the server already acknowledged are marked SUCCESS; the
        handshake is skipped on start().
        """
        self._require_file()
        completed = self.api.completed_chunks(upload_id)
        with self._lock:
            self.upload_id = upload_id
            for index in completed:
                if 0 <= index < len(self.chunks):
                    self.chunks[index].status = ChunkStatus.SUCCESS
        logger.info(f"Resuming session {upload_id}: {len(completed)}/{len(self.chunks)} chunks already uploaded")
        return completed

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def start(self) -> TransferState:
        """Hash the file, open a session if needed, and upload. Blocks until done or paused."""
        self._require_file()
        with self._lock:
            if self.state is not TransferState.IDLE:
                raise RuntimeError(f"Cannot start from {self.state.value}")
            self.state = TransferState.HASHING

        try:
            self.file_hash = fingerprint_file(self.file_path, self.hash_window)
            logger.info(f"File fingerprint: {self.file_hash}")

            if self.upload_id is None:
                session = self.api.handshake(self.file_path.name, self.total_size, len(self.chunks), self.file_hash)
                self.upload_id = session["uploadId"]
                logger.info(f"Session initialized: {self.upload_id}")
        except Exception as e:
            logger.error(f"Could not start upload: {e}")
            self._fail(e)
            return self.state

        with self._lock:
            self.state = TransferState.UPLOADING
            self.started_at = self._clock()

        return self._run()

    def pause(self) -> None:
        """Stop dispatching new chunks; chunks in flight finish their current attempt."""
        with self._lock:
            if self.state is TransferState.UPLOADING:
                self.state = TransferState.PAUSED
                logger.info("Upload paused")

    def resume(self) -> TransferState:
        """Re-enter the dispatch loop; chunks already SUCCESS are skipped."""
        with self._lock:
            if self.state is not TransferState.PAUSED:
                raise RuntimeError(f"Cannot resume from {self.state.value}")
            self.state = TransferState.UPLOADING
        logger.info("Upload resumed")
        return self._run()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _run(self) -> TransferState:
        pending = [c for c in self.chunks if c.status is not ChunkStatus.SUCCESS]
        logger.info(f"Uploading {len(pending)} chunks using {self.max_workers} parallel workers")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._dispatch, chunk) for chunk in pending]
            try:
                wait(futures)
            except KeyboardInterrupt:
                # Pause before the executor drains its queue on exit
                self.pause()
                raise

        with self._lock:
            if self.state is not TransferState.UPLOADING:
                # PAUSED, or FAILED by a chunk
                return self.state

        if not all(c.status is ChunkStatus.SUCCESS for c in self.chunks):
            self._fail(RuntimeError("Upload ended with unacknowledged chunks"))
            return self.state

        return self._finalize()

    def _dispatch(self, chunk: ClientChunk) -> None:
        with self._lock:
            if self.state is not TransferState.UPLOADING:
                return
        try:
            self._upload_with_retry(chunk)
        except ChunkUploadFailed as e:
            self._fail(e)
        except OSError as e:
            logger.error(f"Cannot read chunk {chunk.index} from {self.file_path}: {e}")
            self._fail(e)

    def _upload_with_retry(self, chunk: ClientChunk) -> None:
        data = self._read_chunk(chunk)
        attempts = 0

        while attempts < self.max_retries:
            try:
                self._set_chunk(chunk, ChunkStatus.UPLOADING, progress=0)
                self.api.upload_chunk(
                    self.upload_id,
                    chunk.index,
                    chunk.start,
                    data,
                    on_progress=lambda loaded, c=chunk: self._update_chunk_progress(c, loaded),
                )
                self._set_chunk(chunk, ChunkStatus.SUCCESS, progress=chunk.size)
                return
            except Exception as e:
                attempts += 1
                chunk.retry_count = attempts
                logger.warning(f"Chunk {chunk.index} failed (attempt {attempts}): {e}")

                if attempts >= self.max_retries:
                    self._set_chunk(chunk, ChunkStatus.ERROR, progress=0)
                    raise ChunkUploadFailed(chunk.index, attempts, e) from e

                self._sleep(self.backoff_base * 2 ** attempts)

    def _read_chunk(self, chunk: ClientChunk) -> bytes:
        with open(self.file_path, "rb") as f:
            f.seek(chunk.start)
            return f.read(chunk.size)

    def _finalize(self) -> TransferState:
        try:
            result = self.api.finalize(self.upload_id, self.file_hash)
            if not result.get("isValid", False):
                raise IntegrityMismatch(self.file_hash, result.get("finalHash") or "")
        except Exception as e:
            logger.error(f"Finalize failed for session {self.upload_id}: {e}")
            self._fail(e)
            return self.state

        with self._lock:
            self.final_hash = result.get("finalHash")
            self.files_in_container = list(result.get("fileContents") or [])
            self.state = TransferState.COMPLETED

        logger.info(f"Upload completed: session {self.upload_id}, {len(self.files_in_container)} entries")
        return self.state

    def _fail(self, error: Exception) -> None:
        with self._lock:
            if self.state is TransferState.FAILED:
                return
            self.state = TransferState.FAILED
            self.error = error
        logger.error(f"Upload failed: {error}")

    # ------------------------------------------------------------------
    # Progress accounting
    # ------------------------------------------------------------------

    def _set_chunk(self, chunk: ClientChunk, status: ChunkStatus, progress: int) -> None:
        with self._lock:
            chunk.status = status
            chunk.progress = progress
        self._notify()

    def _update_chunk_progress(self, chunk: ClientChunk, loaded: int) -> None:
        with self._lock:
            chunk.progress = min(loaded, chunk.size)
        self._notify()

    def _notify(self) -> None:
        if self._on_progress:
            self._on_progress(self.progress())

    def uploaded_bytes(self) -> int:
        with self._lock:
            return sum(c.size if c.status is ChunkStatus.SUCCESS else c.progress for c in self.chunks)

    def progress(self) -> ProgressSnapshot:
        uploaded = self.uploaded_bytes()
        elapsed = self._clock() - self.started_at if self.started_at is not None else 0.0
        speed = uploaded / elapsed if elapsed > 0 else 0.0
        remaining = self.total_size - uploaded
        eta = remaining / speed if speed > 0 else 0.0
        return ProgressSnapshot(uploaded_bytes=uploaded, total_bytes=self.total_size, speed=speed, eta=eta)

    def _require_file(self) -> None:
        if self.file_path is None:
            raise RuntimeError("No file selected")
