"""Timing capture for measured workloads.

A workload is any callable ``workload(evals)`` that runs ``evals``
repetitions of some unit of work and returns a :class:`Measurement` for
the whole batch.  :class:`FunctionWorkload` builds one from a plain
Python callable: wall time via ``time.perf_counter_ns`` and collector
time via ``gc.callbacks``.

A workload may also provide ``profile_memory()``, returning the
:class:`MemoryUsage` of a single evaluation or None.  The runner calls
it once per trial, outside the timed samples, and its result replaces
the batch allocation counters.  ``FunctionWorkload`` implements it with
``tracemalloc`` when built with ``track_memory=True``, so tracing never
runs inside a timed batch.
"""

from __future__ import annotations

import gc
import logging
import time
import tracemalloc
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from trialbench.errors import ExecutionFailure

log = logging.getLogger("trialbench")

MEASUREMENT_FIELDS = ("elapsed_ns", "gc_elapsed_ns", "bytes_allocated", "alloc_count")


# ---------------------------------------------------------------------------
# Measurement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Measurement:
    """Counters for one batch of ``evals`` repetitions."""

    elapsed_ns: int
    gc_elapsed_ns: int = 0
    bytes_allocated: int = 0
    alloc_count: int = 0

    @classmethod
    def coerce(cls, value: Measurement | Mapping[str, Any]) -> Measurement:
        """Accept a Measurement or a mapping with the four counters.

        Raises:
            ExecutionFailure: If the value breaks the workload contract.
        """
        if isinstance(value, Measurement):
            m = value
        elif isinstance(value, Mapping):
            missing = [k for k in MEASUREMENT_FIELDS if k not in value]
            if missing:
                raise ExecutionFailure(
                    f"Workload measurement is missing: {', '.join(missing)}"
                )
            m = cls(**{k: value[k] for k in MEASUREMENT_FIELDS})
        else:
            raise ExecutionFailure(
                f"Workload must return a Measurement or mapping, got {type(value).__name__}"
            )

        for name in MEASUREMENT_FIELDS:
            counter = getattr(m, name)
            if isinstance(counter, bool) or not isinstance(counter, int) or counter < 0:
                raise ExecutionFailure(
                    f"Workload reported invalid {name}: {counter!r} "
                    f"(expected a non-negative integer)"
                )
        return m


Workload = Callable[[int], Any]


def invoke(workload: Workload, evals: int, *, phase: str) -> Measurement:
    """Run one batch and normalize its result.

    Any ``Exception`` raised by the workload is re-raised as
    :class:`ExecutionFailure`; ``KeyboardInterrupt`` passes through.
    """
    try:
        raw = workload(evals)
    except ExecutionFailure:
        raise
    except Exception as exc:
        raise ExecutionFailure(
            f"Workload failed during {phase} (evals={evals}): {exc!r}",
            phase=phase,
            evals=evals,
        ) from exc
    return Measurement.coerce(raw)


# ---------------------------------------------------------------------------
# Memory profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemoryUsage:
    """Allocation profile of a single evaluation.

    ``bytes_allocated`` is the peak traced memory above the level before
    the evaluation, so memory that is allocated and freed again within
    the call still counts.  ``alloc_count`` is the number of traced
    blocks the evaluation allocated that are still alive when it returns,
    its return value included.
    """

    bytes_allocated: int
    alloc_count: int


def measure_memory(workload: Workload) -> MemoryUsage | None:
    """Ask *workload* for its single-evaluation memory profile.

    Returns None when the workload has no ``profile_memory`` method or
    the method returns None.

    Raises:
        ExecutionFailure: If the workload raises while being profiled,
            or returns something other than a MemoryUsage.
    """
    profile = getattr(workload, "profile_memory", None)
    if profile is None:
        return None
    try:
        usage = profile()
    except ExecutionFailure:
        raise
    except Exception as exc:
        raise ExecutionFailure(
            f"Workload failed during memory (evals=1): {exc!r}",
            phase="memory",
            evals=1,
        ) from exc
    if usage is not None and not isinstance(usage, MemoryUsage):
        raise ExecutionFailure(
            f"profile_memory() must return a MemoryUsage, got {type(usage).__name__}",
            phase="memory",
            evals=1,
        )
    return usage


# ---------------------------------------------------------------------------
# GC time accounting
# ---------------------------------------------------------------------------


class _GCTimer:
    """Accumulates time spent inside collections while installed."""

    def __init__(self) -> None:
        self.total_ns = 0
        self._started: int | None = None

    def __call__(self, phase: str, info: dict[str, Any]) -> None:
        if phase == "start":
            self._started = time.perf_counter_ns()
        elif phase == "stop" and self._started is not None:
            self.total_ns += time.perf_counter_ns() - self._started
            self._started = None

    def __enter__(self) -> _GCTimer:
        gc.callbacks.append(self)
        return self

    def __exit__(self, *exc: object) -> None:
        gc.callbacks.remove(self)


# ---------------------------------------------------------------------------
# FunctionWorkload
# ---------------------------------------------------------------------------

_TRACEMALLOC_FILTER = tracemalloc.Filter(False, tracemalloc.__file__)


class FunctionWorkload:
    """Adapt a Python callable to the workload contract.

    ``setup()`` runs before each batch; if it returns something other
    than ``None`` that value is passed as the only argument to *func*.
    ``teardown(state)`` runs after each batch, also when *func* raised.
    Neither is included in the timing.

    Timed batches always report zero allocation counters.  With
    ``track_memory`` the allocations are measured by
    :meth:`profile_memory` in a separate, untimed evaluation.

    Usage::

        wl = FunctionWorkload(lambda xs: sorted(xs), setup=lambda: list(range(1000)))
        m = wl(100)
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        setup: Callable[[], Any] | None = None,
        teardown: Callable[[Any], Any] | None = None,
        track_memory: bool = False,
        name: str | None = None,
    ) -> None:
        self.func = func
        self.setup = setup
        self.teardown = teardown
        self.track_memory = track_memory
        self.name = name or getattr(func, "__qualname__", None) or repr(func)

    def __repr__(self) -> str:
        return f"FunctionWorkload({self.name})"

    def __call__(self, evals: int) -> Measurement:
        state = self.setup() if self.setup is not None else None
        try:
            return self._measure(self._args(state), evals)
        finally:
            if self.teardown is not None:
                self.teardown(state)

    @staticmethod
    def _args(state: Any) -> tuple[Any, ...]:
        return () if state is None else (state,)

    def _measure(self, args: tuple[Any, ...], evals: int) -> Measurement:
        func = self.func
        rounds = range(evals)
        with _GCTimer() as gc_timer:
            start = time.perf_counter_ns()
            for _ in rounds:
                func(*args)
            elapsed = time.perf_counter_ns() - start
        return Measurement(elapsed_ns=elapsed, gc_elapsed_ns=gc_timer.total_ns)

    def profile_memory(self) -> MemoryUsage | None:
        """Trace one evaluation with ``tracemalloc``.

        Returns None unless the workload was built with ``track_memory``.
        Tracing is stopped again afterwards if this call started it.
        """
        if not self.track_memory:
            return None

        state = self.setup() if self.setup is not None else None
        started_tracing = not tracemalloc.is_tracing()
        try:
            if started_tracing:
                tracemalloc.start()
            before = tracemalloc.take_snapshot()
            tracemalloc.reset_peak()
            base_size, _ = tracemalloc.get_traced_memory()
            result = self.func(*self._args(state))
            _, peak = tracemalloc.get_traced_memory()
            after = tracemalloc.take_snapshot()
            del result
        finally:
            if started_tracing:
                tracemalloc.stop()
            if self.teardown is not None:
                self.teardown(state)

        diff = after.filter_traces([_TRACEMALLOC_FILTER]).compare_to(
            before.filter_traces([_TRACEMALLOC_FILTER]), "lineno"
        )
        usage = MemoryUsage(
            bytes_allocated=max(peak - base_size, 0),
            alloc_count=sum(max(stat.count_diff, 0) for stat in diff),
        )
        log.debug(
            "Memory profile of %s: %d bytes, %d blocks",
            self.name,
            usage.bytes_allocated,
            usage.alloc_count,
        )
        return usage


def measured(
    func: Callable[..., Any] | None = None,
    *,
    setup: Callable[[], Any] | None = None,
    teardown: Callable[[Any], Any] | None = None,
    track_memory: bool = False,
) -> Any:
    """Wrap *func* as a :class:`FunctionWorkload`; usable as a decorator.

    ::

        @measured(setup=make_input)
        def parse(data):
            ...
    """

    def wrap(f: Callable[..., Any]) -> FunctionWorkload:
        return FunctionWorkload(f, setup=setup, teardown=teardown, track_memory=track_memory)

    if func is not None:
        return wrap(func)
    return wrap
