"""nhop-reach - For every node, find the nodes reachable in exactly N hops."""

from nhop_reach.graph.propagate import propagate
from nhop_reach.graph.superstep import reachable_from_edges, run_supersteps
from nhop_reach.solver.solve import main_solve, solve

__all__ = ["main_solve", "propagate", "reachable_from_edges", "run_supersteps", "solve"]
