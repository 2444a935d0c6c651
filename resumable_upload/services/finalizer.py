"""
Verifies, promotes and inspects a fully received upload, once per session
"""
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..core.locks import LockRegistry, upload_locks
from ..models import UploadSession
from ..shared.errors import SessionNotFound
from ..shared.fingerprint import fingerprint_file
from ..shared.status import UploadStatus
from .chunk_sink import ChunkSink
from .container import peek_entries
from .session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    """Verdict of a finalize call"""
    server_fingerprint: Optional[str]
    is_valid: bool
    entries: List[str] = field(default_factory=list)
    session: Optional[UploadSession] = None
    already_completed: bool = False


class Finalizer:
    """
    Finalize pipeline:
    1. Take the session's lock from the registry (one finalize at a time per id)
    2. Return the stored verdict if the session is already terminal
    3. Stream-hash the partial artifact and compare with the client fingerprint
    4. On mismatch: leave the partial artifact in place, mark FAILED
    5. On match: move the artifact to {completed_dir}/{id}{extension}, list it,
       mark COMPLETED

    Promotion failures propagate. Listing failures degrade to a sentinel entry.
    """

    def __init__(
        self,
        store: SessionStore,
        sink: ChunkSink,
        completed_dir: Union[str, Path],
        extension: str = ".zip",
        locks: Optional[LockRegistry] = None,
    ):
        self.store = store
        self.sink = sink
        self.completed_dir = Path(completed_dir)
        self.completed_dir.mkdir(parents=True, exist_ok=True)
        self.extension = extension
        self.locks = locks if locks is not None else upload_locks

    def artifact_path(self, upload_id: str) -> Path:
        return self.completed_dir / f"{upload_id}{self.extension}"

    def finalize(self, upload_id: str, client_fingerprint: str) -> FinalizeResult:
        with self.locks.get(upload_id):
            upload = self.store.get_session(upload_id)
            if upload is None:
                raise SessionNotFound(upload_id)

            if upload.upload_status.is_terminal:
                logger.info(f"Session {upload_id} already {upload.status}, returning stored result")
                return self._stored_result(upload)

            server_fingerprint = fingerprint_file(self.sink.partial_path(upload_id))

            if server_fingerprint != client_fingerprint:
                logger.error(
                    f"Fingerprint mismatch for session {upload_id}: "
                    f"client {client_fingerprint}, server {server_fingerprint}"
                )
                upload = self.store.update_session_result(upload_id, UploadStatus.FAILED, server_fingerprint)
                return FinalizeResult(
                    server_fingerprint=server_fingerprint,
                    is_valid=False,
                    session=upload,
                )

            final_path = self._promote(upload_id)
            entries = peek_entries(final_path)
            upload = self.store.update_session_result(upload_id, UploadStatus.COMPLETED, server_fingerprint)

            logger.info(f"Finalized session {upload_id}: {final_path} ({len(entries)} entries)")
            return FinalizeResult(
                server_fingerprint=server_fingerprint,
                is_valid=True,
                entries=entries,
                session=upload,
            )

    def _promote(self, upload_id: str) -> Path:
        """Move the partial artifact over any stale artifact with the same id."""
        final_path = self.artifact_path(upload_id)
        shutil.move(str(self.sink.partial_path(upload_id)), str(final_path))
        return final_path

    def _stored_result(self, upload: UploadSession) -> FinalizeResult:
        completed = upload.upload_status is UploadStatus.COMPLETED
        return FinalizeResult(
            server_fingerprint=upload.final_hash,
            is_valid=completed,
            entries=peek_entries(self.artifact_path(upload.id)) if completed else [],
            session=upload,
            already_completed=True,
        )
