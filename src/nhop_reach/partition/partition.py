"""Hash partitioning of keyed records into on-disk buckets."""

import zlib
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path

from nhop_reach.graph.parse import NEIGHBOR_SEPARATOR, format_record, parse_edge_line
from nhop_reach.graph.types import ShuffleRecord
from nhop_reach.partition.cache import LRUFileCache
from nhop_reach.partition.types import BUCKET_GLOB, MAX_OPEN_HANDLES, PartitionStats


def bucket_for(key: bytes, bucket_mask: int) -> int:
    """Stable bucket index for a key.

    Bitwise AND gives hash % num_buckets for power-of-two bucket counts.
    """
    return zlib.crc32(key) & bucket_mask


def partition_edges(
    input_path: str,
    num_buckets: int,
    out_dir: str,
) -> tuple[list[int], PartitionStats]:
    """
    Partition raw edge lines into buckets keyed by node.

    Each edge line is written to its source's bucket as a
    `<source>\\t<dest,...>` record, and every destination is registered in
    its own bucket with an empty list, so all records for one node land in
    the same bucket.

    Returns:
        Tuple of (sorted indices of non-empty buckets, partition statistics).
    """
    bucket_mask = num_buckets - 1
    cache = LRUFileCache(MAX_OPEN_HANDLES, Path(out_dir))
    stats = PartitionStats()

    try:
        with open(input_path, "rb") as handle:
            for line in handle:
                stats.lines_read += 1
                if not line.strip():
                    stats.empty_lines += 1
                    continue

                parsed = parse_edge_line(line)
                if parsed is None:
                    stats.malformed_lines += 1
                    continue

                source, destinations = parsed
                cache.write(
                    bucket_for(source, bucket_mask),
                    format_record(source, NEIGHBOR_SEPARATOR.join(destinations)),
                )
                stats.records_written += 1

                for dest in destinations:
                    cache.write(bucket_for(dest, bucket_mask), format_record(dest, b""))
                    stats.records_written += 1

    finally:
        cache.close_all()

    return cache.written_buckets(), stats


def partition_records(
    records: Iterable[ShuffleRecord],
    num_buckets: int,
    out_dir: str,
) -> int:
    """Write `(key, value)` records into buckets by key; returns the record count."""
    bucket_mask = num_buckets - 1
    cache = LRUFileCache(MAX_OPEN_HANDLES, Path(out_dir))
    written = 0

    try:
        for key, value in records:
            cache.write(bucket_for(key, bucket_mask), format_record(key, value))
            written += 1
    finally:
        cache.close_all()

    return written


def collect_bucket_inputs(directory: Path) -> list[tuple[int, list[str]]]:
    """
    Gather, per bucket index, every non-empty shard file under `directory`.

    Buckets with no data are left out. Sorted by bucket index.
    """
    collected: defaultdict[int, list[str]] = defaultdict(list)
    for path in sorted(directory.glob(f"shard_*/{BUCKET_GLOB}")):
        if path.stat().st_size == 0:
            continue
        bucket_idx = int(path.stem.removeprefix("bucket_"))
        collected[bucket_idx].append(str(path))
    return sorted(collected.items())
