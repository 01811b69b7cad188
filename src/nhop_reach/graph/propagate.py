"""Per-node, per-round transition function of the hop propagation."""

from collections.abc import Iterable

from nhop_reach.errors import ProtocolInvariantViolation
from nhop_reach.graph.types import (
    AdjacencyAnnouncement,
    HitRecord,
    HopMessage,
    Message,
    NodeId,
    Outbox,
    RoundConfig,
)


def propagate(node: NodeId, inbox: Iterable[Message], config: RoundConfig) -> Outbox:
    """
    Compute one node's output for one round from its complete inbox.

    - A hop message that completes its N-th hop here becomes a HitRecord.
    - Other hop messages are forwarded one hop further to every neighbour,
      unless this is the terminal round, where they are dropped.
    - The adjacency announcement is re-emitted to the node itself on every
      non-terminal round.
    - A node that forwarded nothing seeds `(node, 0)` to its neighbours.
      This only happens at round 0 for nodes that receive traffic, but a
      node nobody points at keeps reseeding; those late seeds cannot reach
      N hops before the terminal round.

    The result does not depend on the order of the inbox.

    Raises:
        ProtocolInvariantViolation: a hop message would exceed N hops.
    """
    outbox = Outbox()
    is_terminal = config.is_terminal
    adjacency: frozenset[NodeId] | None = None
    forward: list[HopMessage] = []

    for message in inbox:
        match message:
            case HopMessage(origin=origin, distance=distance):
                hops = distance + 1
                if hops > config.max_hop:
                    raise ProtocolInvariantViolation(
                        f"hop message from {origin!r} reached {node!r} at distance "
                        f"{hops} > {config.max_hop} in round {config.round_index}"
                    )
                if hops == config.max_hop:
                    outbox.hits.append(HitRecord(origin, node))
                elif not is_terminal:
                    forward.append(HopMessage(origin, hops))
            case AdjacencyAnnouncement(neighbors=neighbors):
                adjacency = neighbors if adjacency is None else adjacency | neighbors

    # Without an announcement the node cannot address anyone this round.
    if adjacency is None:
        return outbox

    # With N = 0 the seed is already at distance N on its own node.
    if config.max_hop == 0:
        outbox.hits.append(HitRecord(node, node))

    if is_terminal:
        return outbox

    outbox.messages.append((node, AdjacencyAnnouncement(adjacency)))

    outgoing = forward or [HopMessage(node, 0)]
    for neighbor in sorted(adjacency):
        for hop in outgoing:
            outbox.messages.append((neighbor, hop))

    return outbox
