"""
Durable record of upload sessions and the receipt status of their chunks
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..core.locks import StripedLock
from ..models import UploadChunk, UploadSession
from ..shared.errors import SessionNotFound, ValidationError
from ..shared.status import ChunkStatus, UploadStatus

logger = logging.getLogger(__name__)


@dataclass
class SessionStatus:
    """A session plus the indexes of its chunks recorded as SUCCESS"""
    session: UploadSession
    completed_chunk_indexes: List[int] = field(default_factory=list)

    @property
    def missing_chunk_indexes(self) -> List[int]:
        done = set(self.completed_chunk_indexes)
        return [i for i in range(self.session.total_chunks) if i not in done]


class SessionStore:
    """
    Session/chunk persistence over an injected SQLAlchemy session factory.

    Rows are returned detached (the factory must use expire_on_commit=False),
    so callers can read them after the database session is closed.
    """

    def __init__(self, session_factory: sessionmaker, chunk_locks: Optional[StripedLock] = None):
        self.session_factory = session_factory
        self.chunk_locks = chunk_locks or StripedLock()

    def create_session(self, filename: str, total_size: int, total_chunks: int) -> UploadSession:
        upload = UploadSession(
            filename=filename,
            total_size=total_size,
            total_chunks=total_chunks,
            status=UploadStatus.UPLOADING.value,
        )
        with self.session_factory() as db:
            db.add(upload)
            db.commit()

        logger.info(f"Created upload session {upload.id} for {filename} ({total_chunks} chunks)")
        return upload

    def get_session(self, upload_id: str) -> Optional[UploadSession]:
        with self.session_factory() as db:
            return db.get(UploadSession, upload_id)

    def find_existing(self, total_size: int, fingerprint: str) -> Optional[UploadSession]:
        """Most recent session that finalized with the same size and fingerprint"""
        with self.session_factory() as db:
            return db.execute(
                select(UploadSession)
                .where(
                    UploadSession.total_size == total_size,
                    UploadSession.final_hash == fingerprint,
                )
                .order_by(UploadSession.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()

    def record_chunk(
        self,
        upload_id: str,
        index: int,
        size: int,
        status: ChunkStatus = ChunkStatus.SUCCESS,
        received_at: Optional[datetime] = None,
    ) -> None:
        """
        Upsert the record for (upload_id, index); the last write wins.

        Writers of the same key are serialized in-process by a striped lock.
        A unique-constraint race with another process falls back to update.
        """
        if index < 0:
            raise ValidationError(f"Chunk index must not be negative, got {index}")
        received_at = received_at or datetime.now(timezone.utc)
        values = {"size": size, "status": ChunkStatus(status).value, "received_at": received_at}

        with self.chunk_locks.get((upload_id, index)):
            with self.session_factory() as db:
                if self._update_chunk(db, upload_id, index, values):
                    db.commit()
                    return

                db.add(UploadChunk(upload_id=upload_id, index=index, **values))
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    logger.debug(f"Chunk {index} of {upload_id} inserted concurrently, updating instead")
                    self._update_chunk(db, upload_id, index, values)
                    db.commit()

    @staticmethod
    def _update_chunk(db, upload_id: str, index: int, values: dict) -> bool:
        result = db.execute(
            update(UploadChunk)
            .where(UploadChunk.upload_id == upload_id, UploadChunk.index == index)
            .values(**values)
        )
        return result.rowcount > 0

    def get_status(self, upload_id: str) -> Optional[SessionStatus]:
        with self.session_factory() as db:
            upload = db.get(UploadSession, upload_id)
            if upload is None:
                return None

            indexes = db.execute(
                select(UploadChunk.index)
                .where(
                    UploadChunk.upload_id == upload_id,
                    UploadChunk.status == ChunkStatus.SUCCESS.value,
                )
                .order_by(UploadChunk.index)
            ).scalars().all()

        return SessionStatus(session=upload, completed_chunk_indexes=list(indexes))

    def update_session_result(
        self,
        upload_id: str,
        status: UploadStatus,
        final_hash: Optional[str],
    ) -> UploadSession:
        """
        Move an UPLOADING session to its terminal state.

        The WHERE clause makes the transition happen at most once; a session
        that is already terminal is returned unchanged.
        """
        status = UploadStatus(status)
        if not status.is_terminal:
            raise ValidationError(f"{status.value} is not a terminal status")

        with self.session_factory() as db:
            result = db.execute(
                update(UploadSession)
                .where(
                    UploadSession.id == upload_id,
                    UploadSession.status == UploadStatus.UPLOADING.value,
                )
                .values(
                    status=status.value,
                    final_hash=final_hash,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            db.commit()

            upload = db.get(UploadSession, upload_id)
            if upload is None:
                raise SessionNotFound(upload_id)
            # update() bypasses the identity map; reload what the row holds now
            db.refresh(upload)

        if result.rowcount == 0:
            logger.warning(f"Session {upload_id} already {upload.status}, result not overwritten")
        else:
            logger.info(f"Session {upload_id} marked {status.value}")
        return upload

    def list_sessions(self, status: Optional[UploadStatus] = None) -> List[UploadSession]:
        with self.session_factory() as db:
            query = select(UploadSession)
            if status is not None:
                query = query.where(UploadSession.status == UploadStatus(status).value)
            return list(db.execute(query.order_by(UploadSession.created_at.desc())).scalars().all())
