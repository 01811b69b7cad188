"""Bucket-level work units for the on-disk solver.

Each function handles every key of one bucket. All records for a key live
in the same bucket, so a bucket task sees complete inboxes.
"""

from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

from nhop_reach.errors import MalformedRecordError
from nhop_reach.graph.build import group_unique
from nhop_reach.graph.parse import (
    decode_message,
    encode_message,
    format_record,
    read_records,
    split_neighbors,
)
from nhop_reach.graph.propagate import propagate
from nhop_reach.graph.types import AdjacencyAnnouncement, Message, NodeId, RoundConfig
from nhop_reach.partition.cache import LRUFileCache
from nhop_reach.partition.partition import bucket_for, partition_records
from nhop_reach.partition.types import BUFFER_SIZE, MAX_OPEN_HANDLES


@dataclass(frozen=True, slots=True)
class MaterializeTask:
    """Build adjacency announcements for one bucket of edge records."""

    bucket_index: int
    input_paths: tuple[str, ...]
    output_dir: str
    num_buckets: int


@dataclass(frozen=True, slots=True)
class RoundTask:
    """Run the propagator over one bucket of one round."""

    bucket_index: int
    input_paths: tuple[str, ...]
    output_dir: str
    hits_path: str
    num_buckets: int
    config: RoundConfig


@dataclass(slots=True)
class BucketStats:
    """Counters reported back by one bucket task."""

    bucket_index: int
    nodes: int = 0
    records_in: int = 0
    malformed_records: int = 0
    records_out: int = 0
    hits: int = 0


def materialize_bucket(task: MaterializeTask) -> BucketStats:
    """
    Union the destinations of every node in the bucket.

    Writes one adjacency announcement per node, partitioned for round 0.
    """
    stats = BucketStats(task.bucket_index)

    def edge_lists():
        for key, value in read_records(task.input_paths):
            stats.records_in += 1
            yield key, split_neighbors(value)

    adjacency = group_unique(edge_lists())
    stats.nodes = len(adjacency)

    announcements = (
        (node, encode_message(AdjacencyAnnouncement(frozenset(neighbors))))
        for node, neighbors in adjacency.items()
    )
    stats.records_out = partition_records(announcements, task.num_buckets, task.output_dir)
    return stats


def process_round_bucket(task: RoundTask) -> BucketStats:
    """
    Run one round for every node whose inbox lives in this bucket.

    Outgoing messages are partitioned into `task.output_dir` for the next
    round; hit records are appended to `task.hits_path` as
    `<origin>\\t<reached>` lines. Malformed message values are skipped.
    """
    stats = BucketStats(task.bucket_index)
    inboxes: defaultdict[NodeId, list[Message]] = defaultdict(list)

    for key, value in read_records(task.input_paths):
        stats.records_in += 1
        try:
            inboxes[key].append(decode_message(value))
        except MalformedRecordError:
            stats.malformed_records += 1

    stats.nodes = len(inboxes)
    bucket_mask = task.num_buckets - 1
    cache = LRUFileCache(MAX_OPEN_HANDLES, Path(task.output_dir))

    try:
        with open(task.hits_path, "ab", buffering=BUFFER_SIZE) as hits_file:
            for node, inbox in inboxes.items():
                outbox = propagate(node, inbox, task.config)

                for target, message in outbox.messages:
                    cache.write(
                        bucket_for(target, bucket_mask),
                        format_record(target, encode_message(message)),
                    )
                stats.records_out += len(outbox.messages)

                for hit in outbox.hits:
                    hits_file.write(format_record(hit.origin, hit.reached))
                stats.hits += len(outbox.hits)
    finally:
        cache.close_all()

    return stats
