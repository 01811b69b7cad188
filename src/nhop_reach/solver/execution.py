"""How bucket tasks run: inline, on a thread pool or on a process pool."""

import os
import sys
from collections.abc import Callable, Sequence
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor

type ExecutorClass = type[ThreadPoolExecutor] | type[ProcessPoolExecutor] | None

# Forces a mode: "serial", "threads" or "processes".
NHOP_EXECUTOR_ENV = "NHOP_EXECUTOR"

# Round tasks are small; ship them to worker processes in batches.
PROCESS_POOL_CHUNKSIZE = 4

_EXECUTOR_MODES: dict[str, ExecutorClass] = {
    "serial": None,
    "threads": ThreadPoolExecutor,
    "processes": ProcessPoolExecutor,
}


def is_gil_enabled() -> bool:
    """True unless running on a free-threaded interpreter with the GIL off."""
    try:
        return sys._is_gil_enabled()
    except AttributeError:
        return True


def get_executor_class() -> ExecutorClass:
    """
    Pick the executor that runs the bucket tasks of each round.

    An explicit NHOP_EXECUTOR value wins (case-insensitive). Otherwise
    propagation is CPU bound, so a process pool is used while the GIL is
    held and a thread pool once it is disabled. None means tasks run inline
    in the calling thread.
    """
    executor_override = os.environ.get(NHOP_EXECUTOR_ENV, "").lower()
    if executor_override in _EXECUTOR_MODES:
        return _EXECUTOR_MODES[executor_override]

    return ProcessPoolExecutor if is_gil_enabled() else ThreadPoolExecutor


def describe_executor(executor_class: ExecutorClass) -> str:
    """Mode name of an executor class, as accepted by NHOP_EXECUTOR."""
    for name, candidate in _EXECUTOR_MODES.items():
        if candidate is executor_class:
            return name
    return "processes"


def run_to_barrier(executor: Executor | None, fn: Callable, tasks: Sequence) -> list:
    """
    Run every task of one stage and return their results in task order.

    On success this returns only after every task has finished. The first
    task exception is re-raised as soon as its result is reached; the
    caller is responsible for cancelling what is still queued.
    """
    if executor is None:
        return [fn(task) for task in tasks]
    if isinstance(executor, ProcessPoolExecutor):
        return list(executor.map(fn, tasks, chunksize=PROCESS_POOL_CHUNKSIZE))
    return list(executor.map(fn, tasks))
