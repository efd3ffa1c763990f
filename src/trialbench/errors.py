"""Exception types raised by trialbench.

Degenerate ratios and tuning that never reaches its threshold are not
errors and have no exception type here.
"""

from __future__ import annotations


class TrialBenchError(Exception):
    """Base class for all trialbench errors."""


class ConfigurationError(TrialBenchError, ValueError):
    """A Parameters field (or a profile entry) is invalid."""


class ExecutionFailure(TrialBenchError, RuntimeError):
    """The measured workload raised while being tuned or sampled.

    The workload's own exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, phase: str = "", evals: int = 0) -> None:
        super().__init__(message)
        self.phase = phase  # "warmup", "tuning" or "sample"
        self.evals = evals


class EmptyTrialError(TrialBenchError):
    """A sampling loop ended before recording a single sample."""
