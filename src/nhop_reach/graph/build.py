"""Grouping utilities shared by adjacency materialization and the final pass."""

from collections import defaultdict
from collections.abc import Iterable, Iterator

from nhop_reach.graph.types import AdjacencyMap, EdgeRecord, NodeId


def group_unique(records: Iterable[tuple[NodeId, Iterable[NodeId]]]) -> AdjacencyMap:
    """
    Group values by key and union them into a deduplicated set.

    A key seen only with an empty value list still gets an (empty) entry.
    """
    grouped: AdjacencyMap = defaultdict(set)
    for key, values in records:
        grouped[key].update(values)
    return dict(grouped)


def _with_sink_nodes(records: Iterable[EdgeRecord]) -> Iterator[EdgeRecord]:
    for source, destinations in records:
        yield source, destinations
        # Destination-only nodes get an empty adjacency set.
        for dest in destinations:
            yield dest, ()


def build_adjacency(records: Iterable[EdgeRecord]) -> AdjacencyMap:
    """
    Build one deduplicated adjacency set per node.

    Every node mentioned anywhere in the edge records is present in the
    result, so nodes without out-edges are announced too.
    """
    return group_unique(_with_sink_nodes(records))
