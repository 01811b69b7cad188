#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.12"
# dependencies = ["psutil"]
# ///
"""
Benchmark nhop-reach under each executor policy.

Runs the CLI as a subprocess once per mode (serial, threads, processes)
and trial, measures wall-clock time and peak RSS of the whole process tree,
and reports a statistical summary. The outputs of every run must be
byte-identical; a mismatch is reported as a warning.

Uses psutil to track memory across the entire process tree (parent + all
children), which matters when the process pool is used.
"""

import argparse
import logging
import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from statistics import median

# Check for psutil early
try:
    import psutil
except ImportError:
    sys.stderr.write("ERROR: psutil is required for process-tree memory benchmarking.\n")
    sys.stderr.write("Install with: pip install 'nhop-reach[bench]'\n")
    sys.exit(1)

logger = logging.getLogger(__name__)

MODES = ["serial", "threads", "processes"]


def sample_tree_rss(root_proc: psutil.Process) -> int:
    """Sum the RSS of a process and all its descendants, in bytes."""
    total_rss = 0

    try:
        total_rss += root_proc.memory_info().rss
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return 0

    try:
        children = root_proc.children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return total_rss

    for child in children:
        try:
            total_rss += child.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return total_rss


def measure_peak_rss_tree(proc: subprocess.Popen, poll_interval_s: float) -> int:
    """Poll the process tree until `proc` exits; return the peak total RSS in bytes."""
    try:
        root_proc = psutil.Process(proc.pid)
    except psutil.NoSuchProcess:
        return 0

    peak_bytes = 0
    while proc.poll() is None:
        peak_bytes = max(peak_bytes, sample_tree_rss(root_proc))
        time.sleep(poll_interval_s)
    return peak_bytes


def run_once(
    input_file: str,
    hops: int,
    buckets: int,
    mode: str,
    mem_sample_ms: int,
    output_dir: Path,
) -> dict:
    """
    Run the CLI once under `mode` and capture timing, memory and output.

    Returns:
        Dict with keys: mode, seconds, peak_rss_tree_mib, output.
    """
    env = os.environ.copy()
    env["NHOP_EXECUTOR"] = mode
    output_path = output_dir / f"result_{mode}.tsv"

    cmd = [
        sys.executable, "-m", "nhop_reach.cli",
        input_file, str(output_path),
        "--hops", str(hops),
        "--buckets", str(buckets),
        "--log-level", "WARNING",
    ]

    start_time = time.perf_counter()
    proc = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
    )
    peak_rss_bytes = measure_peak_rss_tree(proc, mem_sample_ms / 1000.0)
    _, stderr = proc.communicate()
    elapsed = time.perf_counter() - start_time

    if proc.returncode != 0:
        logger.error("Error running benchmark (%s):", mode)
        logger.error("%s", stderr)
        sys.exit(1)

    return {
        "mode": mode,
        "seconds": elapsed,
        "peak_rss_tree_mib": peak_rss_bytes / (1024 * 1024),
        "output": output_path.read_bytes(),
    }


def compute_stats(results: list[dict]) -> dict:
    """Compute statistics from a list of benchmark results."""
    times = [r["seconds"] for r in results]
    return {
        "median_time": median(times),
        "min_time": min(times),
        "max_time": max(times),
        "median_rss_tree": median(r["peak_rss_tree_mib"] for r in results),
        "outputs": {r["output"] for r in results},
    }


def run_benchmark(
    input_file: str,
    hops: int,
    buckets: int,
    modes: list[str],
    mem_sample_ms: int,
    num_trials: int,
    num_warmup: int,
) -> None:
    with tempfile.TemporaryDirectory(prefix="nhop_bench_") as tmp_dir:
        output_dir = Path(tmp_dir)

        logger.info("Warming up (%d run(s) per mode, not counted)...", num_warmup)
        for _ in range(num_warmup):
            for mode in modes:
                run_once(input_file, hops, buckets, mode, mem_sample_ms, output_dir)

        results: dict[str, list[dict]] = {mode: [] for mode in modes}

        # Rotate the order every trial to reduce bias
        logger.info("Running %d trials (rotating order)...", num_trials)
        for trial in range(1, num_trials + 1):
            rotation = (trial - 1) % len(modes)
            for mode in modes[rotation:] + modes[:rotation]:
                results[mode].append(
                    run_once(input_file, hops, buckets, mode, mem_sample_ms, output_dir)
                )
            logger.info(
                "  Trial %d/%d: %s",
                trial,
                num_trials,
                ", ".join(f"{mode}={results[mode][-1]['seconds']:.2f}s" for mode in modes),
            )

    all_stats = {mode: compute_stats(results[mode]) for mode in modes}

    distinct_outputs = set().union(*(stats["outputs"] for stats in all_stats.values()))
    if len(distinct_outputs) > 1:
        logger.warning("Outputs differ between runs! (%d distinct results)", len(distinct_outputs))

    logger.info("=" * 72)
    logger.info(
        "%s %s %s %s %s",
        "Executor".ljust(12), "Median(s)".ljust(11), "Min(s)".ljust(9),
        "Max(s)".ljust(9), "Peak RSS Tree(MiB)",
    )
    logger.info("-" * 72)
    for mode in modes:
        stats = all_stats[mode]
        logger.info(
            "%s %s %s %s %s",
            mode.ljust(12),
            f"{stats['median_time']:.3f}".ljust(11),
            f"{stats['min_time']:.3f}".ljust(9),
            f"{stats['max_time']:.3f}".ljust(9),
            f"{stats['median_rss_tree']:.1f}",
        )
    logger.info("-" * 72)

    baseline = all_stats[modes[0]]["median_time"]
    for mode in modes[1:]:
        median_time = all_stats[mode]["median_time"]
        if median_time > 0:
            logger.info("Speedup %s vs %s: %.2fx", mode, modes[0], baseline / median_time)
    logger.info("=" * 72)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Benchmark nhop-reach across executor policies."
    )
    parser.add_argument("input_file", help="Path to the edge file")
    parser.add_argument("-n", "--hops", type=int, default=3, help="Hop count N (default: 3)")
    parser.add_argument(
        "--buckets", type=int, default=64, help="Number of buckets (default: 64)"
    )
    parser.add_argument(
        "--modes",
        nargs="+",
        choices=MODES,
        default=MODES,
        help="Executor modes to compare (default: all)",
    )
    parser.add_argument(
        "--trials", type=int, default=5, help="Number of timed trials per mode (default: 5)"
    )
    parser.add_argument(
        "--warmup", type=int, default=1, help="Number of warm-up runs per mode (default: 1)"
    )
    parser.add_argument(
        "--mem-sample-ms",
        type=int,
        default=75,
        help="Memory sampling interval in milliseconds (default: 75)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(message)s",
        stream=sys.stderr,
    )

    if not Path(args.input_file).exists():
        logger.error("Input file not found: %s", args.input_file)
        logger.error("  Hint: generate one with generate_synthetic_graph.py")
        sys.exit(1)

    logger.info("Input: %s | hops=%d | buckets=%d", args.input_file, args.hops, args.buckets)
    logger.info("Trials: %d | Warm-up runs: %d", args.trials, args.warmup)
    logger.info("Memory sampling: %dms interval (process-tree RSS via psutil)", args.mem_sample_ms)
    logger.info("Python: %s", sys.executable)
    logger.info("")

    run_benchmark(
        args.input_file,
        args.hops,
        args.buckets,
        args.modes,
        args.mem_sample_ms,
        args.trials,
        args.warmup,
    )


if __name__ == "__main__":
    main()
