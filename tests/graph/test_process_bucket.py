"""Tests for bucket-level materialize and round tasks."""

import tempfile
from pathlib import Path

from nhop_reach.graph.parse import iter_records
from nhop_reach.graph.process_bucket import (
    MaterializeTask,
    RoundTask,
    materialize_bucket,
    process_round_bucket,
)
from nhop_reach.graph.types import RoundConfig


def read_all_records(directory: Path) -> list[tuple[bytes, bytes]]:
    records = []
    for path in sorted(directory.rglob("*.bin")):
        with open(path, "rb") as handle:
            records.extend(iter_records(handle))
    return sorted(records)


class TestMaterializeBucket:
    """Test cases for materialize_bucket."""

    def test_unions_destinations_per_node(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            edges = tmp_path / "edges.bin"
            edges.write_bytes(b"A\tB\nA\tC,B\nB\t\nC\t\n")
            out_dir = tmp_path / "round_0" / "shard_0000"

            stats = materialize_bucket(
                MaterializeTask(
                    bucket_index=0,
                    input_paths=(str(edges),),
                    output_dir=str(out_dir),
                    num_buckets=4,
                )
            )

            assert stats.records_in == 4
            assert stats.nodes == 3
            assert stats.records_out == 3
            assert read_all_records(out_dir) == [(b"A", b"B,C"), (b"B", b""), (b"C", b"")]


class TestProcessRoundBucket:
    """Test cases for process_round_bucket."""

    def test_round_zero_seeds_and_reannounces(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            inbox = tmp_path / "in.bin"
            inbox.write_bytes(b"A\tB\nB\t\n")
            out_dir = tmp_path / "round_1" / "shard_0000"
            hits_path = tmp_path / "hits.bin"

            stats = process_round_bucket(
                RoundTask(
                    bucket_index=0,
                    input_paths=(str(inbox),),
                    output_dir=str(out_dir),
                    hits_path=str(hits_path),
                    num_buckets=2,
                    config=RoundConfig(0, 2),
                )
            )

            assert stats.nodes == 2
            assert stats.records_out == 3
            assert stats.hits == 0
            assert read_all_records(out_dir) == [(b"A", b"B"), (b"B", b""), (b"B", b"A|0")]
            assert hits_path.read_bytes() == b""

    def test_terminal_round_writes_hits_only(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            inbox = tmp_path / "in.bin"
            inbox.write_bytes(b"D\t\nD\tA|1\nD\tB|1\nD\tA|1\nE\tC|0\n")
            out_dir = tmp_path / "round_3" / "shard_0000"
            hits_path = tmp_path / "hits.bin"

            stats = process_round_bucket(
                RoundTask(
                    bucket_index=0,
                    input_paths=(str(inbox),),
                    output_dir=str(out_dir),
                    hits_path=str(hits_path),
                    num_buckets=2,
                    config=RoundConfig(2, 2),
                )
            )

            assert stats.hits == 3
            assert stats.records_out == 0
            assert not out_dir.exists()
            assert sorted(hits_path.read_bytes().splitlines()) == [
                b"A\tD",
                b"A\tD",
                b"B\tD",
            ]

    def test_malformed_messages_are_counted_and_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            inbox = tmp_path / "in.bin"
            inbox.write_bytes(b"B\tC\nB\tA|zero\nB\tA|0\nno tab\n")
            out_dir = tmp_path / "round_2" / "shard_0000"

            stats = process_round_bucket(
                RoundTask(
                    bucket_index=0,
                    input_paths=(str(inbox),),
                    output_dir=str(out_dir),
                    hits_path=str(tmp_path / "hits.bin"),
                    num_buckets=1,
                    config=RoundConfig(1, 3),
                )
            )

            assert stats.records_in == 3
            assert stats.malformed_records == 1
            assert read_all_records(out_dir) == [(b"B", b"C"), (b"C", b"A|1")]

    def test_reads_every_shard_of_the_bucket(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_path = Path(tmp_dir)
            first = tmp_path / "shard_0000.bin"
            second = tmp_path / "shard_0001.bin"
            first.write_bytes(b"B\tC\n")
            second.write_bytes(b"B\tA|0\n")
            out_dir = tmp_path / "out"

            process_round_bucket(
                RoundTask(
                    bucket_index=0,
                    input_paths=(str(first), str(second)),
                    output_dir=str(out_dir),
                    hits_path=str(tmp_path / "hits.bin"),
                    num_buckets=1,
                    config=RoundConfig(1, 3),
                )
            )

            # The hop message was forwarded, so B did not seed itself.
            assert read_all_records(out_dir) == [(b"B", b"C"), (b"C", b"A|1")]
