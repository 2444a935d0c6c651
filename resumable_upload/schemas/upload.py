"""
Pydantic schemas for the upload protocol

Field names travel as camelCase on the wire (totalSize, uploadId, ...).
Byte sizes are sent as decimal strings so large values survive JSON clients
that only have double precision numbers.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HandshakeRequest(WireModel):
    """Opens a new upload session"""
    filename: str = Field(..., min_length=1, max_length=512)
    total_size: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=0)
    file_hash: str = Field(..., min_length=1, max_length=64)


class HandshakeResponse(WireModel):
    upload_id: str
    existing_chunks: List[int] = Field(default_factory=list)  # reserved for resume-by-fingerprint


class ChunkUploadResponse(WireModel):
    status: str = "uploaded"


class FinalizeRequest(WireModel):
    file_hash: str = Field(..., min_length=1, max_length=64)


class SessionResponse(WireModel):
    """Upload session metadata"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    filename: str
    total_size: int
    total_chunks: int
    status: str
    final_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("total_size")
    def serialize_total_size(self, total_size: int) -> str:
        return str(total_size)


class StatusResponse(SessionResponse):
    completed_chunk_indexes: List[int]


class FinalizeResponse(SessionResponse):
    is_valid: bool
    already_completed: bool = False
    file_contents: List[str]


class SessionListResponse(WireModel):
    total: int
    sessions: List[SessionResponse]
