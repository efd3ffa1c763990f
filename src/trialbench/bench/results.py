"""Benchmark result data structures and serialization.

Hierarchy::

    Trial (one sampling run)
      → params: Parameters
      → times / gctimes: per-evaluation ns, chronological
      → memory / allocs: per-evaluation scalars

    TrialEstimate (one point estimate of a Trial)
    TrialRatio (field-wise ratio of two estimates)
    TrialJudgement (verdict per field of a ratio)

Files produced::

    <name>.json: one Trial, as written by save_trial()
"""

from __future__ import annotations

import enum
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from trialbench.bench.config import Parameters

log = logging.getLogger("trialbench")

TRIAL_FORMAT_VERSION = 1


# ---------------------------------------------------------------------------
# Trial
# ---------------------------------------------------------------------------


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass(frozen=True)
class Trial:
    """Samples collected by one run of the sampling loop.

    ``times[i]`` and ``gctimes[i]`` belong to the same sample; order is
    the order the samples were taken in.
    """

    params: Parameters
    times: tuple[int, ...]
    gctimes: tuple[int, ...]
    memory: int = 0
    allocs: int = 0

    def __post_init__(self) -> None:
        # Accept any sequence but store tuples.
        object.__setattr__(self, "times", tuple(self.times))
        object.__setattr__(self, "gctimes", tuple(self.gctimes))
        if not self.times:
            raise ValueError("A Trial needs at least one sample.")
        if len(self.times) != len(self.gctimes):
            raise ValueError(
                f"times and gctimes differ in length ({len(self.times)} != {len(self.gctimes)})"
            )
        for name, values in (("times", self.times), ("gctimes", self.gctimes)):
            bad = [v for v in values if not _is_count(v)]
            if bad:
                raise ValueError(f"{name} must be non-negative integers (got {bad[0]!r}).")
        for name in ("memory", "allocs"):
            value = getattr(self, name)
            if not _is_count(value):
                raise ValueError(f"{name} must be a non-negative integer (got {value!r}).")

    def __len__(self) -> int:
        return len(self.times)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "version": TRIAL_FORMAT_VERSION,
            "params": self.params.to_dict(),
            "times": list(self.times),
            "gctimes": list(self.gctimes),
            "memory": self.memory,
            "allocs": self.allocs,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Trial:
        """Deserialize from a dict produced by :meth:`to_dict`.

        Raises:
            KeyError: If ``times`` or ``gctimes`` is missing.
            ValueError: If a field has the wrong shape or type.
        """
        for key in ("times", "gctimes"):
            if not isinstance(data[key], list):
                raise ValueError(f"{key} must be a list.")
        if not isinstance(data.get("params", {}), dict):
            raise ValueError("params must be an object.")
        return cls(
            params=Parameters.from_dict(data.get("params", {})),
            times=tuple(data["times"]),
            gctimes=tuple(data["gctimes"]),
            memory=data.get("memory", 0),
            allocs=data.get("allocs", 0),
        )


def save_trial(path: Path, trial: Trial) -> None:
    """Write *trial* as JSON to *path*, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(trial.to_dict(), indent=2) + "\n", encoding="utf-8")
    log.debug("Saved trial with %d samples to %s", len(trial), path)


def load_trial(path: Path) -> Trial:
    """Read a trial written by :func:`save_trial`.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not a valid trial.
    """
    if not path.exists():
        raise FileNotFoundError(f"Trial file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid trial file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Invalid trial file {path}: expected a JSON object")
    try:
        return Trial.from_dict(data)
    except KeyError as exc:
        raise ValueError(f"Invalid trial file {path}: missing {exc}") from exc
    except ValueError as exc:
        raise ValueError(f"Invalid trial file {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Estimates, ratios, judgements
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrialEstimate:
    """A single-point summary of a Trial."""

    time: float  # ns per evaluation
    gctime: float  # ns per evaluation
    memory: int
    allocs: int
    tolerance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "gctime": self.gctime,
            "memory": self.memory,
            "allocs": self.allocs,
            "tolerance": self.tolerance,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrialEstimate:
        return cls(
            time=data["time"],
            gctime=data["gctime"],
            memory=data["memory"],
            allocs=data["allocs"],
            tolerance=data["tolerance"],
        )


def _json_float(value: float) -> float | str:
    # JSON has no infinity literal.
    return "inf" if math.isinf(value) else value


@dataclass(frozen=True)
class TrialRatio:
    """Field-wise ratio of two estimates (first over second)."""

    time: float
    gctime: float
    memory: float
    allocs: float
    tolerance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": _json_float(self.time),
            "gctime": _json_float(self.gctime),
            "memory": _json_float(self.memory),
            "allocs": _json_float(self.allocs),
            "tolerance": self.tolerance,
        }


class Verdict(enum.Enum):
    """Classification of one ratio field."""

    REGRESSION = "regression"
    IMPROVEMENT = "improvement"
    INVARIANT = "invariant"
    NOT_APPLICABLE = "not-applicable"

    @property
    def symbol(self) -> str:
        """Single-character symbol for compact display."""
        symbols = {
            Verdict.REGRESSION: "+",
            Verdict.IMPROVEMENT: "-",
            Verdict.INVARIANT: "=",
            Verdict.NOT_APPLICABLE: "~",
        }
        return symbols[self]


JUDGED_FIELDS: Sequence[str] = ("time", "memory", "allocs")


@dataclass(frozen=True)
class TrialJudgement:
    """Verdicts for each field of a TrialRatio."""

    ratio: TrialRatio
    time: Verdict
    gctime: Verdict
    memory: Verdict
    allocs: Verdict
    tolerance: float

    @property
    def verdict(self) -> Verdict:
        """The time verdict, the headline result of a comparison."""
        return self.time

    def verdicts(self) -> dict[str, Verdict]:
        return {
            "time": self.time,
            "gctime": self.gctime,
            "memory": self.memory,
            "allocs": self.allocs,
        }

    def is_regression(self) -> bool:
        """True if time, memory or allocs regressed."""
        return any(getattr(self, f) is Verdict.REGRESSION for f in JUDGED_FIELDS)

    def is_improvement(self) -> bool:
        """True if time, memory or allocs improved."""
        return any(getattr(self, f) is Verdict.IMPROVEMENT for f in JUDGED_FIELDS)

    def is_invariant(self) -> bool:
        return all(getattr(self, f) is Verdict.INVARIANT for f in JUDGED_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ratio": self.ratio.to_dict(),
            "verdicts": {k: v.value for k, v in self.verdicts().items()},
            "tolerance": self.tolerance,
        }
