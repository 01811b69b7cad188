"""File-handle cache used by partitioning."""

from collections import OrderedDict
from pathlib import Path
from typing import BinaryIO

from nhop_reach.partition.types import BUFFER_SIZE, bucket_file_name


class LRUFileCache:
    """LRU cache of append handles, one bucket file per index under `out_dir`."""

    def __init__(self, max_handles: int, out_dir: Path):
        self._max_handles = max_handles
        self._out_dir = out_dir
        self._cache: OrderedDict[int, BinaryIO] = OrderedDict()
        self._touched: set[int] = set()

    def _get_path(self, bucket_idx: int) -> Path:
        return self._out_dir / bucket_file_name(bucket_idx)

    def write(self, bucket_idx: int, data: bytes) -> None:
        """Append data to a bucket, opening (and possibly evicting) handles."""
        handle = self._cache.get(bucket_idx)
        if handle is not None:
            self._cache.move_to_end(bucket_idx)
        else:
            while len(self._cache) >= self._max_handles:
                _, old_handle = self._cache.popitem(last=False)
                old_handle.close()

            if not self._touched:
                self._out_dir.mkdir(parents=True, exist_ok=True)
            handle = open(self._get_path(bucket_idx), "ab", buffering=BUFFER_SIZE)  # noqa: SIM115
            self._cache[bucket_idx] = handle
            self._touched.add(bucket_idx)

        handle.write(data)

    def written_buckets(self) -> list[int]:
        """Indices of every bucket written through this cache, sorted."""
        return sorted(self._touched)

    def close_all(self) -> None:
        """Close all open file handles."""
        for handle in self._cache.values():
            handle.close()
        self._cache.clear()
