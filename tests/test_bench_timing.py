"""Tests for trialbench.bench.timing: measurements and function workloads."""

from __future__ import annotations

import gc
import tracemalloc
import unittest

from trialbench.bench.timing import (
    FunctionWorkload,
    Measurement,
    MemoryUsage,
    invoke,
    measure_memory,
    measured,
)
from trialbench.errors import ExecutionFailure


# ---------------------------------------------------------------------------
# Measurement
# ---------------------------------------------------------------------------


class TestMeasurementCoerce(unittest.TestCase):
    def test_passthrough(self) -> None:
        m = Measurement(elapsed_ns=5)
        self.assertIs(Measurement.coerce(m), m)

    def test_mapping(self) -> None:
        m = Measurement.coerce(
            {"elapsed_ns": 10, "gc_elapsed_ns": 1, "bytes_allocated": 64, "alloc_count": 2}
        )
        self.assertEqual(m, Measurement(10, 1, 64, 2))

    def test_mapping_missing_key(self) -> None:
        with self.assertRaises(ExecutionFailure) as ctx:
            Measurement.coerce({"elapsed_ns": 10})
        self.assertIn("gc_elapsed_ns", str(ctx.exception))

    def test_negative_counter(self) -> None:
        with self.assertRaises(ExecutionFailure):
            Measurement.coerce(Measurement(elapsed_ns=-1))

    def test_float_counter(self) -> None:
        with self.assertRaises(ExecutionFailure):
            Measurement.coerce(Measurement(elapsed_ns=1.5))  # type: ignore[arg-type]

    def test_wrong_type(self) -> None:
        with self.assertRaises(ExecutionFailure):
            Measurement.coerce(42)  # type: ignore[arg-type]


class TestInvoke(unittest.TestCase):
    def test_wraps_workload_exception(self) -> None:
        def boom(evals: int) -> Measurement:
            raise ZeroDivisionError("nope")

        with self.assertRaises(ExecutionFailure) as ctx:
            invoke(boom, 8, phase="sample")
        self.assertIsInstance(ctx.exception.__cause__, ZeroDivisionError)
        self.assertEqual(ctx.exception.phase, "sample")
        self.assertEqual(ctx.exception.evals, 8)

    def test_keyboard_interrupt_passes_through(self) -> None:
        def interrupted(evals: int) -> Measurement:
            raise KeyboardInterrupt

        with self.assertRaises(KeyboardInterrupt):
            invoke(interrupted, 1, phase="sample")

    def test_returns_measurement(self) -> None:
        m = invoke(lambda evals: Measurement(elapsed_ns=evals), 3, phase="tuning")
        self.assertEqual(m.elapsed_ns, 3)


# ---------------------------------------------------------------------------
# FunctionWorkload
# ---------------------------------------------------------------------------


class TestFunctionWorkload(unittest.TestCase):
    def test_runs_func_evals_times(self) -> None:
        calls: list[int] = []
        wl = FunctionWorkload(lambda: calls.append(1))
        m = wl(25)
        self.assertEqual(len(calls), 25)
        self.assertGreaterEqual(m.elapsed_ns, 0)
        self.assertEqual(m.bytes_allocated, 0)
        self.assertEqual(m.alloc_count, 0)

    def test_setup_value_passed_to_func(self) -> None:
        seen: list[object] = []
        wl = FunctionWorkload(seen.append, setup=lambda: "state")
        wl(3)
        self.assertEqual(seen, ["state", "state", "state"])

    def test_setup_runs_once_per_batch(self) -> None:
        setups: list[int] = []
        wl = FunctionWorkload(lambda: None, setup=lambda: setups.append(1))
        wl(10)
        wl(10)
        self.assertEqual(len(setups), 2)

    def test_teardown_runs_when_func_raises(self) -> None:
        torn: list[object] = []

        def fail(state: object) -> None:
            raise ValueError("bad")

        wl = FunctionWorkload(fail, setup=lambda: "s", teardown=torn.append)
        with self.assertRaises(ValueError):
            wl(1)
        self.assertEqual(torn, ["s"])

    def test_gc_callback_removed(self) -> None:
        before = list(gc.callbacks)
        FunctionWorkload(lambda: None)(5)
        self.assertEqual(gc.callbacks, before)

    def test_gc_time_counted(self) -> None:
        wl = FunctionWorkload(gc.collect)
        m = wl(3)
        self.assertGreater(m.gc_elapsed_ns, 0)
        self.assertLessEqual(m.gc_elapsed_ns, m.elapsed_ns)

    def test_track_memory_keeps_timed_batch_untraced(self) -> None:
        tracing: list[bool] = []
        wl = FunctionWorkload(lambda: tracing.append(tracemalloc.is_tracing()), track_memory=True)
        m = wl(5)
        self.assertEqual(tracing, [False] * 5)
        self.assertEqual(m.bytes_allocated, 0)
        self.assertEqual(m.alloc_count, 0)

    def test_repr_uses_name(self) -> None:
        def work() -> None:
            pass

        self.assertIn("work", repr(FunctionWorkload(work)))


# ---------------------------------------------------------------------------
# Memory profile
# ---------------------------------------------------------------------------


class TestProfileMemory(unittest.TestCase):
    def test_disabled_without_track_memory(self) -> None:
        self.assertIsNone(FunctionWorkload(lambda: [0] * 100).profile_memory())

    def test_transient_allocation_counts_toward_peak(self) -> None:
        # The list is freed before the call returns.
        usage = FunctionWorkload(lambda: len([0] * 10_000), track_memory=True).profile_memory()
        assert usage is not None
        self.assertGreaterEqual(usage.bytes_allocated, 80_000)
        self.assertFalse(tracemalloc.is_tracing())

    def test_live_blocks_counted(self) -> None:
        wl = FunctionWorkload(lambda: [object() for _ in range(500)], track_memory=True)
        usage = wl.profile_memory()
        assert usage is not None
        self.assertGreaterEqual(usage.alloc_count, 500)

    def test_runs_one_evaluation_with_setup(self) -> None:
        calls: list[object] = []
        torn: list[object] = []
        wl = FunctionWorkload(
            calls.append, setup=lambda: "state", teardown=torn.append, track_memory=True
        )
        wl.profile_memory()
        self.assertEqual(calls, ["state"])
        self.assertEqual(torn, ["state"])

    def test_stops_tracing_on_error(self) -> None:
        def fail() -> None:
            raise RuntimeError

        with self.assertRaises(RuntimeError):
            FunctionWorkload(fail, track_memory=True).profile_memory()
        self.assertFalse(tracemalloc.is_tracing())

    def test_leaves_existing_tracing_running(self) -> None:
        tracemalloc.start()
        self.addCleanup(tracemalloc.stop)
        FunctionWorkload(lambda: [0] * 100, track_memory=True).profile_memory()
        self.assertTrue(tracemalloc.is_tracing())


class TestMeasureMemory(unittest.TestCase):
    def test_workload_without_profile(self) -> None:
        self.assertIsNone(measure_memory(lambda evals: Measurement(elapsed_ns=evals)))

    def test_returns_profile(self) -> None:
        class Profiled:
            def __call__(self, evals: int) -> Measurement:
                return Measurement(elapsed_ns=evals)

            def profile_memory(self) -> MemoryUsage:
                return MemoryUsage(bytes_allocated=64, alloc_count=2)

        self.assertEqual(measure_memory(Profiled()), MemoryUsage(64, 2))

    def test_failure_wrapped(self) -> None:
        wl = FunctionWorkload(lambda: 1 / 0, track_memory=True)
        with self.assertRaises(ExecutionFailure) as ctx:
            measure_memory(wl)
        self.assertEqual(ctx.exception.phase, "memory")
        self.assertIsInstance(ctx.exception.__cause__, ZeroDivisionError)

    def test_wrong_return_type(self) -> None:
        class Broken:
            def profile_memory(self) -> int:
                return 42

        with self.assertRaises(ExecutionFailure):
            measure_memory(Broken())  # type: ignore[arg-type]


class TestMeasuredDecorator(unittest.TestCase):
    def test_bare(self) -> None:
        @measured
        def work() -> None:
            pass

        self.assertIsInstance(work, FunctionWorkload)

    def test_with_options(self) -> None:
        @measured(setup=lambda: 3)
        def double(x: int) -> int:
            return x * 2

        self.assertIsInstance(double, FunctionWorkload)
        self.assertIsNotNone(double.setup)
        self.assertGreaterEqual(double(4).elapsed_ns, 0)


if __name__ == "__main__":
    unittest.main()
