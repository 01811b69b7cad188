"""Command-line interface for exact N-hop reachability."""

import argparse
import logging
import sys

from nhop_reach.errors import ReachabilityError
from nhop_reach.solver.solve import main_solve

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure logging to write to stderr."""
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nhop-reach",
        description="For every node, list the nodes reachable in exactly N hops.",
    )

    parser.add_argument(
        "input_file",
        help="Path to the edge file (one '<source><TAB><dest,dest,...>' per line)",
    )

    parser.add_argument(
        "output_file",
        help="Path for the result ('<origin><TAB><nodes>' per line), or - for stdout",
    )

    parser.add_argument(
        "-n", "--hops",
        type=int,
        required=True,
        help="Exact number of hops N (>= 0)",
    )

    parser.add_argument(
        "--buckets",
        type=int,
        default=64,
        help="Number of buckets for partitioning (power of 2, default: 64)",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker count for the thread/process pool (default: executor default)",
    )

    parser.add_argument(
        "--work-dir",
        default=None,
        help="Parent directory for intermediate round files (default: system temp)",
    )

    parser.add_argument(
        "--keep-work-dir",
        action="store_true",
        help="Keep intermediate round files for inspection",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = getattr(logging, args.log_level)
    configure_logging(log_level)

    if args.hops < 0:
        parser.error(f"--hops must be >= 0, got {args.hops}")
    if args.buckets < 1 or args.buckets & (args.buckets - 1) != 0:
        parser.error(f"--buckets must be a power of 2, got {args.buckets}")

    try:
        main_solve(
            input_path=args.input_file,
            output_path=args.output_file,
            max_hop=args.hops,
            buckets=args.buckets,
            workers=args.workers,
            work_dir=args.work_dir,
            keep_work_dir=args.keep_work_dir,
        )
    except (ReachabilityError, OSError) as exc:
        logger.error("%s", exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
