import logging
import os
import shutil
import sys
import tempfile
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass
from pathlib import Path

from nhop_reach.errors import ProtocolInvariantViolation, RoundFailure
from nhop_reach.graph.build import group_unique
from nhop_reach.graph.parse import read_records
from nhop_reach.graph.process_bucket import (
    BucketStats,
    MaterializeTask,
    RoundTask,
    materialize_bucket,
    process_round_bucket,
)
from nhop_reach.graph.types import RoundConfig
from nhop_reach.partition.partition import collect_bucket_inputs, partition_edges
from nhop_reach.partition.types import round_dir, shard_dir
from nhop_reach.solver.execution import (
    NHOP_EXECUTOR_ENV,
    describe_executor,
    get_executor_class,
    is_gil_enabled,
    run_to_barrier,
)

logger = logging.getLogger(__name__)

# Round index reported when adjacency materialization fails.
MATERIALIZE_ROUND = -1


@dataclass(frozen=True, slots=True)
class ReachabilityResult:
    """Nodes reachable in exactly `max_hop` hops, keyed by origin."""

    reachable: dict[str, frozenset[str]]
    max_hop: int
    rounds_run: int
    hits_emitted: int


def _run_stage(
    executor: Executor | None,
    fn: Callable[..., BucketStats],
    tasks: Sequence,
    round_index: int,
) -> list[BucketStats]:
    """
    Run one stage to its barrier; any task failure aborts the computation.

    On failure, tasks of the stage that have not started yet are cancelled
    and running ones are awaited before the error is raised.
    """
    try:
        return run_to_barrier(executor, fn, tasks)
    except Exception as exc:
        if executor is not None:
            executor.shutdown(wait=True, cancel_futures=True)
        if isinstance(exc, ProtocolInvariantViolation):
            raise
        raise RoundFailure(round_index, f"{type(exc).__name__}: {exc}") from exc


def _build_adjacency(
    executor: Executor | None,
    input_path: str,
    buckets: int,
    work_dir: Path,
) -> None:
    """Partition raw edges by node and write round 0's announcements."""
    edges_dir = work_dir / "edges"
    _, stats = partition_edges(input_path, buckets, str(shard_dir(edges_dir, 0)))

    if stats.malformed_lines > 0:
        logger.warning(
            "Adjacency: %d malformed lines skipped (read=%d, records=%d)",
            stats.malformed_lines,
            stats.lines_read,
            stats.records_written,
        )

    target = round_dir(work_dir, 0)
    tasks = [
        MaterializeTask(
            bucket_index=bucket_idx,
            input_paths=tuple(paths),
            output_dir=str(shard_dir(target, bucket_idx)),
            num_buckets=buckets,
        )
        for bucket_idx, paths in collect_bucket_inputs(edges_dir)
    ]
    results = _run_stage(executor, materialize_bucket, tasks, MATERIALIZE_ROUND)
    logger.info(
        "Adjacency built: %d nodes across %d buckets",
        sum(result.nodes for result in results),
        len(results),
    )


def _run_round(
    executor: Executor | None,
    config: RoundConfig,
    buckets: int,
    work_dir: Path,
    hits_dir: Path,
) -> list[BucketStats]:
    """Run round `config.round_index`: read round_<r>, write round_<r+1>."""
    target = round_dir(work_dir, config.round_index + 1)
    tasks = [
        RoundTask(
            bucket_index=bucket_idx,
            input_paths=tuple(paths),
            output_dir=str(shard_dir(target, bucket_idx)),
            hits_path=str(hits_dir / f"hits_{config.round_index}_{bucket_idx:04d}.bin"),
            num_buckets=buckets,
            config=config,
        )
        for bucket_idx, paths in collect_bucket_inputs(round_dir(work_dir, config.round_index))
    ]
    return _run_stage(executor, process_round_bucket, tasks, config.round_index)


def _run_pipeline(
    executor: Executor | None,
    input_path: str,
    max_hop: int,
    buckets: int,
    work_dir: Path,
) -> tuple[dict[str, frozenset[str]], int, int]:
    t1_start = time.perf_counter()
    _build_adjacency(executor, input_path, buckets, work_dir)
    t1 = time.perf_counter() - t1_start
    logger.info("Pass 1 done: adjacency materialized in %.2fs", t1)

    hits_dir = work_dir / "hits"
    hits_dir.mkdir(parents=True, exist_ok=True)

    t2_start = time.perf_counter()
    rounds_run = 0
    hits_emitted = 0
    for round_index in range(max_hop + 1):
        config = RoundConfig(round_index=round_index, max_hop=max_hop)
        round_start = time.perf_counter()
        results = _run_round(executor, config, buckets, work_dir, hits_dir)
        rounds_run += 1

        malformed = sum(result.malformed_records for result in results)
        if malformed > 0:
            logger.warning("Round %d: %d malformed messages skipped", round_index, malformed)

        round_hits = sum(result.hits for result in results)
        hits_emitted += round_hits
        logger.debug(
            "Round %d/%d: %d nodes, %d records in, %d out, %d hits in %.2fs",
            round_index,
            max_hop,
            sum(result.nodes for result in results),
            sum(result.records_in for result in results),
            sum(result.records_out for result in results),
            round_hits,
            time.perf_counter() - round_start,
        )

    leftover = collect_bucket_inputs(round_dir(work_dir, max_hop + 1))
    if leftover:
        raise ProtocolInvariantViolation(
            f"{len(leftover)} buckets still hold messages after terminal round {max_hop}"
        )

    t2 = time.perf_counter() - t2_start
    logger.info("Pass 2 done: %d rounds in %.2fs", rounds_run, t2)

    # Final pass: group hit records by origin, deduplicating targets.
    hit_paths = [str(path) for path in sorted(hits_dir.glob("*.bin")) if path.stat().st_size > 0]
    grouped = group_unique((origin, (reached,)) for origin, reached in read_records(hit_paths))
    reachable = {
        origin.decode("utf-8"): frozenset(node.decode("utf-8") for node in nodes)
        for origin, nodes in grouped.items()
        if nodes
    }
    return reachable, rounds_run, hits_emitted


def solve(
    input_path: str,
    max_hop: int,
    buckets: int = 64,
    workers: int | None = None,
    work_dir: str | None = None,
    keep_work_dir: bool = False,
) -> ReachabilityResult:
    """
    Find, for every node, the nodes reachable by a walk of exactly `max_hop` edges.

    Pipeline:
    1. Partition edges by node and materialize adjacency announcements
    2. Run rounds 0..max_hop, each a full barrier over all buckets
    3. Group the hit records by origin

    Raises:
        ValueError: max_hop is negative or buckets is not a power of 2.
        RoundFailure: a stage did not complete.
        ProtocolInvariantViolation: hop messages outlived the terminal round.
    """
    total_start = time.perf_counter()

    if max_hop < 0:
        raise ValueError(f"max_hop must be >= 0, got {max_hop}")
    if buckets < 1 or buckets & (buckets - 1) != 0:
        raise ValueError(f"buckets must be a power of 2, got {buckets}")

    executor_class = get_executor_class()
    executor_name = describe_executor(executor_class)

    gil_status = "enabled" if is_gil_enabled() else "disabled"
    workers_desc = "auto" if workers is None else str(workers)
    executor_override = os.environ.get(NHOP_EXECUTOR_ENV, "")
    override_info = f", {NHOP_EXECUTOR_ENV}={executor_override}" if executor_override else ""

    logger.info(
        f"Starting: file={Path(input_path).name}, hops={max_hop}, buckets={buckets}, "
        f"workers={workers_desc}, executor={executor_name}, GIL={gil_status}{override_info}"
    )

    tmp_dir = Path(tempfile.mkdtemp(prefix="nhop_reach_", dir=work_dir))

    try:
        if executor_class is None:
            reachable, rounds_run, hits_emitted = _run_pipeline(
                None, input_path, max_hop, buckets, tmp_dir
            )
        else:
            with executor_class(max_workers=workers) as executor:
                reachable, rounds_run, hits_emitted = _run_pipeline(
                    executor, input_path, max_hop, buckets, tmp_dir
                )
    finally:
        if keep_work_dir:
            logger.info("Intermediate rounds kept in %s", tmp_dir)
        else:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    total_time = time.perf_counter() - total_start
    logger.info(
        "Result: %d origins with reachable nodes, %d hits (total %.2fs)",
        len(reachable),
        hits_emitted,
        total_time,
    )
    return ReachabilityResult(
        reachable=reachable,
        max_hop=max_hop,
        rounds_run=rounds_run,
        hits_emitted=hits_emitted,
    )


def format_results(reachable: dict[str, frozenset[str]]) -> list[str]:
    """Render `<origin>\\t<sorted,reachable,nodes>` lines, sorted by origin."""
    return [
        f"{origin}\t{','.join(sorted(reachable[origin]))}\n"
        for origin in sorted(reachable)
        if reachable[origin]
    ]


def write_results(reachable: dict[str, frozenset[str]], output_path: str) -> None:
    """
    Write the final records to `output_path`, or stdout for "-".

    Files are written to a temporary sibling and renamed into place, so a
    reader never sees a partial result.
    """
    lines = format_results(reachable)
    if output_path == "-":
        sys.stdout.writelines(lines)
        return

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{output.name}.", dir=output.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.writelines(lines)
        os.replace(tmp_name, output)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def main_solve(
    input_path: str,
    output_path: str,
    max_hop: int,
    buckets: int = 64,
    workers: int | None = None,
    work_dir: str | None = None,
    keep_work_dir: bool = False,
) -> ReachabilityResult:
    """Main entry point that writes the result to the output sink."""
    result = solve(
        input_path,
        max_hop,
        buckets=buckets,
        workers=workers,
        work_dir=work_dir,
        keep_work_dir=keep_work_dir,
    )
    write_results(result.reachable, output_path)
    return result
