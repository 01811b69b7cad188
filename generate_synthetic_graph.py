#!/usr/bin/env python3
"""
Synthetic graph generator for N-hop reachability benchmarks.

Generates a newline-delimited edge file (`<source><TAB><dest,dest,...>`)
made of many independent components. Each component is a directed ring with
extra chord edges, so walks of every length exist and the number of hop
messages in flight grows with the out-degree.

WARNING: hop message volume grows roughly as out-degree ** N per origin.
Keep --out-degree and the hop count used with the output small.
"""

import argparse
import random
import sys

# Large buffer for efficient streaming writes
BUFFER_SIZE = 1024 * 1024  # 1MB


def generate_component_edges(
    nodes: int,
    out_degree: int,
    chord_mode: str,
    rng: random.Random,
) -> list[list[int]]:
    """
    Generate the out-neighbour lists of one component.

    Node i always points at (i + 1) % nodes; the remaining out-degree is
    filled with chords, either fixed steps i+2, i+3, ... or random steps.

    Returns:
        List indexed by node of destination index lists.
    """
    adjacency: list[list[int]] = []

    for i in range(nodes):
        destinations = [(i + 1) % nodes]

        if chord_mode == "fixed":
            for step in range(2, out_degree + 1):
                destinations.append((i + step) % nodes)
        else:
            steps = rng.sample(range(2, nodes), min(out_degree - 1, nodes - 2))
            destinations.extend((i + step) % nodes for step in steps)

        adjacency.append(destinations)

    return adjacency


def generate_synthetic_graph(
    output_path: str,
    num_components: int,
    nodes: int,
    out_degree: int,
    chord_mode: str,
    seed: int,
) -> int:
    """
    Stream a synthetic graph to `output_path`.

    Returns:
        Total number of lines written (one per node).
    """
    rng = random.Random(seed)
    total_lines = 0

    with open(output_path, "w", encoding="utf-8", buffering=BUFFER_SIZE) as f:
        for c in range(num_components):
            node_names = [f"G{c:06d}_{i:03d}" for i in range(nodes)]

            # Deterministic per-component randomness
            if chord_mode == "random":
                rng.seed((seed, c))

            adjacency = generate_component_edges(nodes, out_degree, chord_mode, rng)
            for src_idx, destinations in enumerate(adjacency):
                dests = ",".join(node_names[d] for d in destinations)
                f.write(f"{node_names[src_idx]}\t{dests}\n")
                total_lines += 1

            if (c + 1) % 10000 == 0:
                print(f"  Generated {c + 1}/{num_components} components...", file=sys.stderr)

    return total_lines


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic directed graph for nhop-reach.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 100k nodes in 1000 rings of 100
  python generate_synthetic_graph.py --out data/synthetic.tsv --components 1000 --nodes 100

  # Denser graph with random chords
  python generate_synthetic_graph.py --out data/dense.tsv --out-degree 3 --chord-mode random
""",
    )

    parser.add_argument("--out", required=True, help="Output file path")
    parser.add_argument(
        "--components",
        type=int,
        default=1000,
        help="Number of independent components (default: 1000)",
    )
    parser.add_argument(
        "--nodes",
        type=int,
        default=64,
        help="Number of nodes per component (default: 64)",
    )
    parser.add_argument(
        "--out-degree",
        type=int,
        default=2,
        help="Out-degree per node (default: 2)",
    )
    parser.add_argument(
        "--chord-mode",
        choices=["fixed", "random"],
        default="fixed",
        help="Chord edge selection mode (default: fixed)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=1,
        help="Random seed for reproducibility (default: 1)",
    )

    args = parser.parse_args()

    if args.nodes < 3:
        parser.error("--nodes must be at least 3")
    if args.out_degree < 1:
        parser.error("--out-degree must be at least 1")
    if args.out_degree >= args.nodes:
        parser.error("--out-degree must be less than --nodes")

    total_nodes = args.components * args.nodes
    print(
        f"Writing {total_nodes:,} nodes / {total_nodes * args.out_degree:,} edges "
        f"to {args.out} (seed={args.seed}, chords={args.chord_mode})",
        file=sys.stderr,
    )

    total_lines = generate_synthetic_graph(
        output_path=args.out,
        num_components=args.components,
        nodes=args.nodes,
        out_degree=args.out_degree,
        chord_mode=args.chord_mode,
        seed=args.seed,
    )

    print(f"Done! Wrote {total_lines:,} lines to {args.out}", file=sys.stderr)


if __name__ == "__main__":
    main()
