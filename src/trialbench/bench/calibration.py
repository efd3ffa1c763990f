"""Clock resolution and call-overhead calibration.

Both values are properties of the process (interpreter, clock, machine)
rather than of any workload, so they are measured once and shared.  The
:class:`Calibrator` computes them lazily under a lock; after that the
value is immutable and reads take no lock.  Tuning receives a calibrator
explicitly so tests can pass :meth:`Calibrator.fixed` instead of timing
the real clock.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from trialbench.bench.timing import FunctionWorkload

log = logging.getLogger("trialbench")

RESOLUTION_READS = 1000
OVERHEAD_ROUNDS = 1000


@dataclass(frozen=True)
class Calibration:
    """Timer resolution and fixed per-invocation overhead, in ns."""

    resolution_ns: int
    overhead_ns: int


def estimate_resolution(reads: int = RESOLUTION_READS) -> int:
    """Estimate the smallest observable step of ``perf_counter_ns``.

    Takes the smallest non-zero difference between consecutive reads,
    but never reports less than the clock's advertised resolution.
    """
    smallest = 0
    for _ in range(reads):
        t0 = time.perf_counter_ns()
        t1 = time.perf_counter_ns()
        while t1 == t0:
            t1 = time.perf_counter_ns()
        step = t1 - t0
        if smallest == 0 or step < smallest:
            smallest = step

    advertised = int(time.get_clock_info("perf_counter").resolution * 1e9)
    return max(smallest, advertised, 1)


def _empty() -> None:
    pass


def estimate_overhead(rounds: int = OVERHEAD_ROUNDS) -> int:
    """Minimum elapsed time of a single-evaluation empty batch."""
    workload = FunctionWorkload(_empty, name="empty")
    return min(workload(1).elapsed_ns for _ in range(rounds))


class Calibrator:
    """Lazily computed, process-wide :class:`Calibration`.

    Usage::

        calibration = default_calibrator().get()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: Calibration | None = None

    @classmethod
    def fixed(cls, calibration: Calibration) -> Calibrator:
        """A calibrator that never touches the clock."""
        calibrator = cls()
        calibrator._value = calibration
        return calibrator

    @property
    def calibrated(self) -> bool:
        return self._value is not None

    def get(self) -> Calibration:
        value = self._value
        if value is not None:
            return value
        with self._lock:
            if self._value is None:
                self._value = self._measure()
            return self._value

    def _measure(self) -> Calibration:
        start = time.monotonic()
        calibration = Calibration(
            resolution_ns=estimate_resolution(),
            overhead_ns=estimate_overhead(),
        )
        log.debug(
            "Calibrated clock: resolution=%dns overhead=%dns (%.3fs)",
            calibration.resolution_ns,
            calibration.overhead_ns,
            time.monotonic() - start,
        )
        return calibration


_default = Calibrator()


def default_calibrator() -> Calibrator:
    """The calibrator shared by every tuning call in this process."""
    return _default
