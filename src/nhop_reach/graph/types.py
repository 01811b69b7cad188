"""Shared type definitions for graph processing."""

from dataclasses import dataclass, field

type NodeId = bytes
type AdjacencyMap = dict[NodeId, set[NodeId]]
type EdgeRecord = tuple[NodeId, tuple[NodeId, ...]]
type ShuffleRecord = tuple[NodeId, bytes]
type Message = AdjacencyAnnouncement | HopMessage
type AddressedMessage = tuple[NodeId, Message]


@dataclass(frozen=True, slots=True)
class AdjacencyAnnouncement:
    """A node's out-neighbours, re-announced to itself every round."""

    neighbors: frozenset[NodeId]


@dataclass(frozen=True, slots=True)
class HopMessage:
    """`origin` is `distance` hops away from the node that last forwarded this."""

    origin: NodeId
    distance: int


@dataclass(frozen=True, slots=True)
class HitRecord:
    """`reached` is exactly N hops from `origin`."""

    origin: NodeId
    reached: NodeId


@dataclass(frozen=True, slots=True)
class RoundConfig:
    """Per-round configuration threaded into every propagator call."""

    round_index: int
    max_hop: int

    @property
    def is_terminal(self) -> bool:
        return self.round_index == self.max_hop


@dataclass(slots=True)
class Outbox:
    """Everything one node emits in one round."""

    messages: list[AddressedMessage] = field(default_factory=list)
    hits: list[HitRecord] = field(default_factory=list)
