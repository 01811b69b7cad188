"""Shared constants and metadata structures for partitioning."""

from dataclasses import dataclass
from pathlib import Path

# 1MB buffer for efficient I/O.
BUFFER_SIZE = 1024 * 1024

# Maximum number of file handles to keep open at once (LRU cache limit).
MAX_OPEN_HANDLES = 128


BUCKET_GLOB = "bucket_*.bin"


def bucket_file_name(bucket_idx: int) -> str:
    return f"bucket_{bucket_idx:04d}.bin"


def round_dir(work_dir: Path, round_index: int) -> Path:
    """Directory holding the input of `round_index`."""
    return work_dir / f"round_{round_index}"


def shard_dir(directory: Path, producer_idx: int) -> Path:
    """Per-producer subdirectory, so concurrent writers never share a file."""
    return directory / f"shard_{producer_idx:04d}"


@dataclass
class PartitionStats:
    """Statistics from partition_edges operation."""

    lines_read: int = 0
    empty_lines: int = 0
    malformed_lines: int = 0
    records_written: int = 0
