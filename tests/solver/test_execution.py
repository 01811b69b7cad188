"""Tests for execution-policy helpers."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from nhop_reach.solver import execution


def test_executor_override_modes(monkeypatch) -> None:
    monkeypatch.setenv(execution.NHOP_EXECUTOR_ENV, "serial")
    assert execution.describe_executor(execution.get_executor_class()) == "serial"

    monkeypatch.setenv(execution.NHOP_EXECUTOR_ENV, "threads")
    assert execution.describe_executor(execution.get_executor_class()) == "threads"

    monkeypatch.setenv(execution.NHOP_EXECUTOR_ENV, "PROCESSES")
    assert execution.describe_executor(execution.get_executor_class()) == "processes"


def test_executor_auto_policy(monkeypatch) -> None:
    monkeypatch.delenv(execution.NHOP_EXECUTOR_ENV, raising=False)

    monkeypatch.setattr(execution, "is_gil_enabled", lambda: True)
    assert execution.describe_executor(execution.get_executor_class()) == "processes"

    monkeypatch.setattr(execution, "is_gil_enabled", lambda: False)
    assert execution.describe_executor(execution.get_executor_class()) == "threads"


def test_run_to_barrier_serial_and_threads() -> None:
    tasks = [1, 2, 3]
    assert execution.run_to_barrier(None, lambda x: x * 2, tasks) == [2, 4, 6]

    with ThreadPoolExecutor(max_workers=2) as executor:
        assert execution.run_to_barrier(executor, lambda x: x * 2, tasks) == [2, 4, 6]


def test_run_to_barrier_propagates_task_failure() -> None:
    def fail_on_two(x: int) -> int:
        if x == 2:
            raise OSError("disk full")
        return x

    with ThreadPoolExecutor(max_workers=2) as executor:
        with pytest.raises(OSError, match="disk full"):
            execution.run_to_barrier(executor, fail_on_two, [1, 2, 3])
