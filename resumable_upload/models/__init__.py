"""Models module exports"""
from .database import Base, UploadSession, UploadChunk

__all__ = ["Base", "UploadSession", "UploadChunk"]
