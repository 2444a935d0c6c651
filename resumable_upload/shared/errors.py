"""
Error taxonomy for the upload engine.

Disk failures are not wrapped: they surface as the builtin OSError.
"""


class UploadError(Exception):
    """Base class for upload protocol errors"""


class ValidationError(UploadError):
    """Malformed or out-of-range request; nothing was changed"""


class SessionNotFound(UploadError):
    """No upload session with the given id"""

    def __init__(self, upload_id: str):
        super().__init__(f"Upload session {upload_id} not found")
        self.upload_id = upload_id


class IntegrityMismatch(UploadError):
    """Client and server fingerprints disagree for a finalized upload"""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"Fingerprint mismatch: client {expected}, server {actual}")
        self.expected = expected
        self.actual = actual


class ContainerParseError(UploadError):
    """The promoted artifact could not be read as a container"""
