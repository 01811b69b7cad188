"""Parsing and encoding for edge lines, shuffle records and messages."""

import re
from collections.abc import Iterable, Iterator

from nhop_reach.errors import MalformedRecordError
from nhop_reach.graph.types import (
    AdjacencyAnnouncement,
    EdgeRecord,
    HopMessage,
    Message,
    NodeId,
    ShuffleRecord,
)

# Raw edge lines split on the first run of commas or whitespace.
_EDGE_SEPARATOR = re.compile(rb"[\t,\s]+")

RECORD_SEPARATOR = b"\t"
NEIGHBOR_SEPARATOR = b","
HOP_SEPARATOR = b"|"


def parse_edge_line(raw_line: bytes) -> EdgeRecord | None:
    """
    Parse one raw edge line into (source, destinations).

    `A\\tB,C` yields (A, (B, C)); `A\\t` declares A with no out-edges.
    Returns None for empty lines, lines that have only one field and lines
    with a node id that is not valid UTF-8.
    """
    line = raw_line.rstrip(b"\n\r")
    if not line.strip():
        return None

    parts = _EDGE_SEPARATOR.split(line, maxsplit=1)
    if len(parts) != 2 or not parts[0]:
        return None

    source, rest = parts
    destinations = tuple(dest for dest in _EDGE_SEPARATOR.split(rest) if dest)
    if not all(map(_is_utf8, (source, *destinations))):
        return None
    return source, destinations


def _is_utf8(node: NodeId) -> bool:
    # Results are reported as str, so every id must decode.
    try:
        node.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def iter_edge_records(lines: Iterable[bytes]) -> Iterator[EdgeRecord]:
    """Yield parsed edges from raw lines, skipping invalid lines."""
    for raw_line in lines:
        parsed = parse_edge_line(raw_line)
        if parsed is not None:
            yield parsed


def split_neighbors(value: bytes) -> set[NodeId]:
    """Split a comma-separated node list, ignoring empty entries."""
    return {node for node in value.split(NEIGHBOR_SEPARATOR) if node}


def format_record(key: NodeId, value: bytes) -> bytes:
    """Render one `<key>\\t<value>` line."""
    return key + RECORD_SEPARATOR + value + b"\n"


def parse_record_line(raw_line: bytes) -> ShuffleRecord | None:
    """
    Parse one `<key>\\t<value>` line.

    Returns None for empty lines, lines without a tab and lines with an
    empty key. The value may be empty (a node with no neighbours).
    """
    line = raw_line.rstrip(b"\n\r")
    if not line:
        return None

    key, sep, value = line.partition(RECORD_SEPARATOR)
    if not sep or not key:
        return None
    return key, value


def iter_records(lines: Iterable[bytes]) -> Iterator[ShuffleRecord]:
    for raw_line in lines:
        parsed = parse_record_line(raw_line)
        if parsed is not None:
            yield parsed


def read_records(paths: Iterable[str]) -> Iterator[ShuffleRecord]:
    """Read and parse all records from a sequence of shard files."""
    for path in paths:
        with open(path, "rb") as handle:
            yield from iter_records(handle)


def decode_message(value: bytes) -> Message:
    """
    Decode the value side of a shuffle record.

    `origin|distance` is a hop message; anything without a `|` is a
    comma-separated adjacency announcement.

    Raises:
        MalformedRecordError: the value looks like a hop message but does
            not carry exactly an origin and a non-negative base-10 distance.
    """
    if HOP_SEPARATOR not in value:
        return AdjacencyAnnouncement(frozenset(split_neighbors(value)))

    parts = value.split(HOP_SEPARATOR)
    if len(parts) != 2 or not parts[0]:
        raise MalformedRecordError(f"bad hop message: {value!r}")

    origin, raw_distance = parts
    if not raw_distance.isdigit():
        raise MalformedRecordError(f"bad hop distance: {value!r}")
    return HopMessage(origin, int(raw_distance))


def encode_message(message: Message) -> bytes:
    match message:
        case HopMessage(origin=origin, distance=distance):
            return origin + HOP_SEPARATOR + str(distance).encode("ascii")
        case AdjacencyAnnouncement(neighbors=neighbors):
            return NEIGHBOR_SEPARATOR.join(sorted(neighbors))
    raise TypeError(f"cannot encode {message!r}")
