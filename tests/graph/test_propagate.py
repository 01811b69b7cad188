"""Tests for the per-node round transition."""

import itertools

import pytest

from nhop_reach.errors import ProtocolInvariantViolation
from nhop_reach.graph.propagate import propagate
from nhop_reach.graph.types import AdjacencyAnnouncement, HitRecord, HopMessage, RoundConfig


def announce(*neighbors: bytes) -> AdjacencyAnnouncement:
    return AdjacencyAnnouncement(frozenset(neighbors))


class TestSeeding:
    """A node that forwards nothing seeds itself as an origin."""

    def test_round_zero_seeds_every_neighbor(self) -> None:
        outbox = propagate(b"A", [announce(b"B", b"C")], RoundConfig(0, 2))

        assert outbox.hits == []
        assert outbox.messages == [
            (b"A", announce(b"B", b"C")),
            (b"B", HopMessage(b"A", 0)),
            (b"C", HopMessage(b"A", 0)),
        ]

    def test_idle_node_reseeds_in_later_round(self) -> None:
        outbox = propagate(b"A", [announce(b"B")], RoundConfig(1, 3))
        assert (b"B", HopMessage(b"A", 0)) in outbox.messages

    def test_no_seed_when_something_is_forwarded(self) -> None:
        outbox = propagate(b"B", [announce(b"C"), HopMessage(b"A", 0)], RoundConfig(1, 3))

        assert outbox.messages == [
            (b"B", announce(b"C")),
            (b"C", HopMessage(b"A", 1)),
        ]

    def test_empty_adjacency_neither_forwards_nor_seeds(self) -> None:
        outbox = propagate(b"D", [announce(), HopMessage(b"A", 0)], RoundConfig(1, 3))
        assert outbox.messages == [(b"D", announce())]
        assert outbox.hits == []


class TestHopMessages:
    """Distance accounting, hits and the terminal round."""

    def test_forwards_all_messages_to_all_neighbors(self) -> None:
        inbox = [HopMessage(b"X", 0), announce(b"N1", b"N2"), HopMessage(b"Y", 1)]
        outbox = propagate(b"M", inbox, RoundConfig(2, 4))

        forwarded = [msg for msg in outbox.messages if isinstance(msg[1], HopMessage)]
        assert sorted(forwarded, key=repr) == sorted(
            [
                (b"N1", HopMessage(b"X", 1)),
                (b"N1", HopMessage(b"Y", 2)),
                (b"N2", HopMessage(b"X", 1)),
                (b"N2", HopMessage(b"Y", 2)),
            ],
            key=repr,
        )

    def test_hit_when_distance_reaches_max_hop(self) -> None:
        outbox = propagate(b"C", [HopMessage(b"A", 1)], RoundConfig(2, 2))
        assert outbox.hits == [HitRecord(b"A", b"C")]
        assert outbox.messages == []

    def test_hit_message_is_not_forwarded(self) -> None:
        outbox = propagate(b"C", [announce(b"D"), HopMessage(b"A", 1)], RoundConfig(1, 2))

        assert outbox.hits == [HitRecord(b"A", b"C")]
        # Nothing left to forward, so C seeds itself instead.
        assert (b"D", HopMessage(b"C", 0)) in outbox.messages
        assert (b"D", HopMessage(b"A", 2)) not in outbox.messages

    def test_terminal_round_drops_short_messages_and_announcement(self) -> None:
        outbox = propagate(b"B", [announce(b"C"), HopMessage(b"A", 0)], RoundConfig(3, 3))
        assert outbox.messages == []
        assert outbox.hits == []

    def test_duplicate_hits_are_kept_per_message(self) -> None:
        inbox = [HopMessage(b"A", 1), HopMessage(b"A", 1)]
        outbox = propagate(b"D", inbox, RoundConfig(2, 2))
        assert outbox.hits == [HitRecord(b"A", b"D"), HitRecord(b"A", b"D")]

    def test_distance_beyond_max_hop_is_a_protocol_violation(self) -> None:
        with pytest.raises(ProtocolInvariantViolation):
            propagate(b"B", [HopMessage(b"A", 2)], RoundConfig(2, 2))


class TestMissingAnnouncement:
    """A node without an announcement cannot address anyone."""

    def test_hop_traffic_is_dropped(self) -> None:
        outbox = propagate(b"Q", [HopMessage(b"A", 0)], RoundConfig(1, 3))
        assert outbox.messages == []
        assert outbox.hits == []

    def test_hits_still_recorded(self) -> None:
        outbox = propagate(b"Q", [HopMessage(b"A", 2)], RoundConfig(3, 3))
        assert outbox.hits == [HitRecord(b"A", b"Q")]


def test_zero_hops_node_reaches_itself() -> None:
    outbox = propagate(b"A", [announce(b"B")], RoundConfig(0, 0))
    assert outbox.hits == [HitRecord(b"A", b"A")]
    assert outbox.messages == []


def test_duplicate_announcements_are_merged() -> None:
    outbox = propagate(b"A", [announce(b"B"), announce(b"C")], RoundConfig(0, 1))
    assert outbox.messages[0] == (b"A", announce(b"B", b"C"))


def test_output_is_independent_of_inbox_order() -> None:
    inbox = [
        announce(b"B", b"C"),
        HopMessage(b"X", 0),
        HopMessage(b"Y", 1),
        HopMessage(b"Z", 2),
    ]
    config = RoundConfig(2, 3)
    reference = propagate(b"A", inbox, config)
    assert reference.hits == [HitRecord(b"Z", b"A")]

    for ordering in itertools.permutations(inbox):
        outbox = propagate(b"A", ordering, config)
        assert sorted(outbox.messages, key=repr) == sorted(reference.messages, key=repr)
        assert sorted(outbox.hits, key=repr) == sorted(reference.hits, key=repr)
