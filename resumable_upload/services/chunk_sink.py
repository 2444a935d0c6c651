"""
Writes chunk bytes into one partial artifact per upload session
"""
import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class ChunkSink:
    """
    Positional writer for partial artifacts under `temp_dir`.

    Each write opens the file, writes at the given offset and closes it, so
    concurrent writes to disjoint ranges of the same file never share a
    handle. Resending a chunk rewrites the same bytes. Offsets are not checked
    against any plan here; the caller validates them.
    """

    PARTIAL_SUFFIX = ".part"

    def __init__(self, temp_dir: Union[str, Path]):
        self.temp_dir = Path(temp_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def partial_path(self, upload_id: str) -> Path:
        return self.temp_dir / f"{upload_id}{self.PARTIAL_SUFFIX}"

    def prepare(self, upload_id: str) -> Path:
        """Create the empty partial artifact if it does not exist yet."""
        path = self.partial_path(upload_id)
        path.touch(exist_ok=True)
        return path

    def write(self, upload_id: str, index: int, data: bytes, offset: int) -> None:
        """Write `data` at `offset`. Raises OSError on disk failure."""
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")

        path = self.partial_path(upload_id)
        # O_CREAT without O_TRUNC: the first writer creates, the rest reuse
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
        with os.fdopen(fd, "r+b") as f:
            f.seek(offset)
            f.write(data)

        logger.debug(f"Wrote chunk {index} of {upload_id}: {len(data)} bytes at offset {offset}")
