"""Resumable chunked file upload: client scheduler and server session engine."""

__version__ = "1.0.0"
