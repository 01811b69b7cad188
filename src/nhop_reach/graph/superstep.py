"""In-memory superstep driver.

Runs the same propagation as the on-disk solver, with a dict standing in
for the shuffle. Suitable for graphs that fit in memory and for tests.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from nhop_reach.errors import ProtocolInvariantViolation
from nhop_reach.graph.build import build_adjacency, group_unique
from nhop_reach.graph.parse import iter_edge_records
from nhop_reach.graph.propagate import propagate
from nhop_reach.graph.types import (
    AddressedMessage,
    AdjacencyAnnouncement,
    AdjacencyMap,
    HitRecord,
    Message,
    NodeId,
    RoundConfig,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SuperstepResult:
    """Nodes reachable in exactly N hops, keyed by origin."""

    reachable: AdjacencyMap
    rounds_run: int
    hits_emitted: int


def group_by_key(records: Iterable[AddressedMessage]) -> dict[NodeId, list[Message]]:
    """Collect every message addressed to the same node."""
    inboxes: defaultdict[NodeId, list[Message]] = defaultdict(list)
    for node, message in records:
        inboxes[node].append(message)
    return inboxes


def run_round(
    records: Iterable[AddressedMessage],
    config: RoundConfig,
) -> tuple[list[AddressedMessage], list[HitRecord]]:
    """Run one barrier-separated round over every node with a non-empty inbox."""
    outgoing: list[AddressedMessage] = []
    hits: list[HitRecord] = []
    for node, inbox in group_by_key(records).items():
        outbox = propagate(node, inbox, config)
        outgoing.extend(outbox.messages)
        hits.extend(outbox.hits)
    return outgoing, hits


def run_supersteps(adjacency: AdjacencyMap, max_hop: int) -> SuperstepResult:
    """
    Run rounds 0..max_hop over a materialized adjacency map.

    Raises:
        ValueError: max_hop is negative.
        ProtocolInvariantViolation: messages are still in flight after the
            terminal round.
    """
    if max_hop < 0:
        raise ValueError(f"max_hop must be >= 0, got {max_hop}")

    records: list[AddressedMessage] = [
        (node, AdjacencyAnnouncement(frozenset(neighbors)))
        for node, neighbors in adjacency.items()
    ]
    hits: list[HitRecord] = []
    rounds_run = 0

    for round_index in range(max_hop + 1):
        config = RoundConfig(round_index=round_index, max_hop=max_hop)
        records, round_hits = run_round(records, config)
        hits.extend(round_hits)
        rounds_run += 1
        logger.debug(
            "Round %d/%d: %d messages out, %d hits",
            round_index,
            max_hop,
            len(records),
            len(round_hits),
        )

    if records:
        raise ProtocolInvariantViolation(
            f"{len(records)} messages still in flight after terminal round {max_hop}"
        )

    reachable = group_unique((hit.origin, (hit.reached,)) for hit in hits)
    return SuperstepResult(reachable=reachable, rounds_run=rounds_run, hits_emitted=len(hits))


def reachable_from_edges(lines: Iterable[bytes], max_hop: int) -> SuperstepResult:
    """Materialize adjacency from raw edge lines, then run all rounds."""
    adjacency = build_adjacency(iter_edge_records(lines))
    return run_supersteps(adjacency, max_hop)
