"""Schemas module exports"""
from .upload import (
    HandshakeRequest,
    HandshakeResponse,
    ChunkUploadResponse,
    FinalizeRequest,
    SessionResponse,
    StatusResponse,
    FinalizeResponse,
    SessionListResponse,
)

__all__ = [
    "HandshakeRequest",
    "HandshakeResponse",
    "ChunkUploadResponse",
    "FinalizeRequest",
    "SessionResponse",
    "StatusResponse",
    "FinalizeResponse",
    "SessionListResponse",
]
