"""
Shallow listing of a promoted container (ZIP) artifact
"""
import logging
import zipfile
from pathlib import Path
from typing import List, Union

from ..shared.errors import ContainerParseError

logger = logging.getLogger(__name__)

CORRUPT_CONTAINER_ENTRY = "<Error: Not a valid ZIP file or corrupted>"


def read_top_level_entries(path: Union[str, Path]) -> List[str]:
    """
    Top-level names of a ZIP archive, in archive order.

    Only the central directory is read. Nested entries collapse into their
    first path component; folders keep a trailing slash.
    """
    try:
        with zipfile.ZipFile(path) as archive:
            names = archive.namelist()
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as e:
        raise ContainerParseError(f"Cannot read {path} as a ZIP archive: {e}") from e

    entries: List[str] = []
    seen = set()
    for name in names:
        head, sep, _ = name.lstrip("/").partition("/")
        if not head:
            continue
        entry = head + sep
        if entry not in seen:
            seen.add(entry)
            entries.append(entry)
    return entries


def peek_entries(path: Union[str, Path]) -> List[str]:
    """Like read_top_level_entries, but a parse failure yields the sentinel entry."""
    try:
        return read_top_level_entries(path)
    except ContainerParseError as e:
        logger.error(f"Error peeking container: {e}")
        return [CORRUPT_CONTAINER_ENTRY]
