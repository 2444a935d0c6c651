"""
FastAPI endpoints for the resumable upload protocol
"""
import logging
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.database import SessionLocal
from ..schemas import (
    ChunkUploadResponse,
    FinalizeRequest,
    FinalizeResponse,
    HandshakeRequest,
    HandshakeResponse,
    SessionListResponse,
    SessionResponse,
    StatusResponse,
)
from ..services import UploadService, build_upload_service, parse_chunk_coordinates
from ..shared.errors import SessionNotFound, ValidationError
from ..shared.status import UploadStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/uploads", tags=["uploads"])


@lru_cache(maxsize=1)
def get_upload_service() -> UploadService:
    """Dependency returning the process-wide upload service"""
    return build_upload_service(settings, SessionLocal)


Service = Annotated[UploadService, Depends(get_upload_service)]


async def read_capped_body(request: Request, limit: int) -> bytes:
    """Read the request body, aborting with 413 once it exceeds `limit` bytes."""
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise HTTPException(status_code=413, detail=f"Chunk exceeds limit of {limit} bytes")

    body = bytearray()
    async for block in request.stream():
        body.extend(block)
        if len(body) > limit:
            raise HTTPException(status_code=413, detail=f"Chunk exceeds limit of {limit} bytes")
    return bytes(body)


@router.post("/handshake", response_model=HandshakeResponse)
def handshake(request: HandshakeRequest, service: Service):
    """Open an upload session and prepare its partial artifact."""
    try:
        upload = service.handshake(
            request.filename,
            request.total_size,
            request.total_chunks,
            request.file_hash,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Handshake error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to start upload session")

    return HandshakeResponse(upload_id=upload.id, existing_chunks=[])


@router.put("/{upload_id}/chunk", response_model=ChunkUploadResponse)
async def upload_chunk(
    upload_id: str,
    request: Request,
    service: Service,
    x_chunk_index: Annotated[Optional[str], Header()] = None,
    x_chunk_offset: Annotated[Optional[str], Header()] = None,
):
    """
    Receive one chunk as a raw octet-stream body.

    Idempotent: resending a chunk rewrites the same byte range, so clients can
    retry freely.
    """
    try:
        index, offset = parse_chunk_coordinates(x_chunk_index, x_chunk_offset)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = await read_capped_body(request, service.max_chunk_bytes)

    try:
        await run_in_threadpool(service.receive_chunk, upload_id, index, offset, data)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Chunk {index} of session {upload_id} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Chunk write failed")

    return ChunkUploadResponse()


@router.post("/{upload_id}/finalize", response_model=FinalizeResponse)
def finalize(upload_id: str, request: FinalizeRequest, service: Service):
    """
    Verify the assembled file against the client fingerprint and promote it.

    A second call for a finished session returns the stored verdict.
    """
    logger.info(f"Starting finalize for upload session {upload_id}")
    try:
        result = service.finalize(upload_id, request.file_hash)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Finalize failed for session {upload_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Finalization failed")

    session = SessionResponse.model_validate(result.session)
    return FinalizeResponse(
        **session.model_dump(),
        is_valid=result.is_valid,
        already_completed=result.already_completed,
        file_contents=result.entries,
    )


@router.get("/{upload_id}/status", response_model=StatusResponse)
def get_upload_status(upload_id: str, service: Service):
    """Session metadata plus the chunk indexes already acknowledged."""
    try:
        status = service.get_status(upload_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    session = SessionResponse.model_validate(status.session)
    return StatusResponse(
        **session.model_dump(),
        completed_chunk_indexes=status.completed_chunk_indexes,
    )


@router.get("", response_model=SessionListResponse)
def list_sessions(service: Service, status: Optional[UploadStatus] = None):
    """List upload sessions, newest first, optionally filtered by status."""
    sessions = service.list_sessions(status)
    return SessionListResponse(
        total=len(sessions),
        sessions=[SessionResponse.model_validate(s) for s in sessions],
    )
