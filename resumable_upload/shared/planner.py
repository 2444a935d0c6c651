"""
Deterministic partition of a file into fixed-size byte ranges.

The same (file_size, chunk_size) always yields the same ranges, which is what
lets a chunk index mean the same bytes across processes and retries.
"""
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class ChunkRange:
    """Half-open byte range [start, end) of chunk `index`"""
    index: int
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


def total_chunks(file_size: int, chunk_size: int) -> int:
    """ceil(file_size / chunk_size)"""
    _check(file_size, chunk_size)
    return (file_size + chunk_size - 1) // chunk_size


def plan(file_size: int, chunk_size: int) -> List[ChunkRange]:
    """Split [0, file_size) into ordered, contiguous chunk ranges."""
    count = total_chunks(file_size, chunk_size)
    return [
        ChunkRange(
            index=i,
            start=i * chunk_size,
            end=min((i + 1) * chunk_size, file_size),
        )
        for i in range(count)
    ]


def _check(file_size: int, chunk_size: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"file_size must not be negative, got {file_size}")
