"""API module exports"""
from .endpoints import router, get_upload_service

__all__ = ["router", "get_upload_service"]
