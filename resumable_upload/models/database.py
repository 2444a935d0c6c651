"""
Database models for upload sessions and their chunks

One UploadSession row per handshake; one UploadChunk row per acknowledged
chunk index, unique on (upload_id, index) so a resent chunk overwrites its
row instead of adding another.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..shared.status import ChunkStatus, UploadStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


class UploadSession(Base):
    """Upload session metadata"""
    __tablename__ = "upload_sessions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    total_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_chunks: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=UploadStatus.UPLOADING.value,
        nullable=False,
        index=True
    )
    # Set by finalize; null until then
    final_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )

    chunks: Mapped[List["UploadChunk"]] = relationship(
        back_populates="upload",
        cascade="all, delete-orphan",
        order_by="UploadChunk.index"
    )

    @property
    def upload_status(self) -> UploadStatus:
        return UploadStatus(self.status)

    def __repr__(self):
        return f"<UploadSession(id={self.id}, filename={self.filename}, status={self.status})>"


class UploadChunk(Base):
    """Receipt record for one chunk index of a session"""
    __tablename__ = "upload_chunks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    upload_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("upload_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    index: Mapped[int] = mapped_column(Integer, nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ChunkStatus.UPLOADING.value, nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    upload: Mapped[UploadSession] = relationship(back_populates="chunks")

    __table_args__ = (
        UniqueConstraint("upload_id", "index", name="uq_upload_chunk_index"),
    )

    def __repr__(self):
        return f"<UploadChunk(upload_id={self.upload_id}, index={self.index}, status={self.status})>"
