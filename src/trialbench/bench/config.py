"""Benchmark parameters and process-wide defaults.

Handles:
- The immutable ``Parameters`` record consumed by the tuner and runner.
- Validation of every field at construction (never clamped).
- Process-wide ``DEFAULTS`` with per-call overrides.
- Loading defaults from YAML profiles, with CLI values taking precedence.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from trialbench.errors import ConfigurationError

log = logging.getLogger("trialbench")

PARAMETER_FIELDS = ("seconds", "samples", "evals", "gctrial", "gcsample", "tolerance")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single invalid configuration field."""

    field: str
    message: str


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_real(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_fields(
    *,
    seconds: Any,
    samples: Any,
    evals: Any,
    gctrial: Any,
    gcsample: Any,
    tolerance: Any,
) -> list[ValidationError]:
    """Check the six parameter fields.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if not _is_real(seconds) or not seconds > 0:
        errors.append(
            ValidationError("seconds", f"Time budget must be a positive number (got {seconds!r}).")
        )
    if not _is_int(samples) or samples < 1:
        errors.append(
            ValidationError("samples", f"Sample count must be an integer >= 1 (got {samples!r}).")
        )
    if not _is_int(evals) or evals < 1:
        errors.append(
            ValidationError(
                "evals", f"Evaluations per sample must be an integer >= 1 (got {evals!r})."
            )
        )
    if not isinstance(gctrial, bool):
        errors.append(ValidationError("gctrial", f"Must be a boolean (got {gctrial!r})."))
    if not isinstance(gcsample, bool):
        errors.append(ValidationError("gcsample", f"Must be a boolean (got {gcsample!r})."))
    # NaN fails both comparisons.
    if not _is_real(tolerance) or not 0 < tolerance <= 1:
        errors.append(
            ValidationError("tolerance", f"Tolerance must be in (0, 1] (got {tolerance!r}).")
        )

    return errors


def _raise_if_invalid(errors: list[ValidationError]) -> None:
    if errors:
        messages = [f"  {e.field}: {e.message}" for e in errors]
        raise ConfigurationError("Invalid benchmark parameters:\n" + "\n".join(messages))


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Parameters:
    """Configuration for one tuning + trial run.

    Attributes:
        seconds: Wall-clock budget for the sampling loop.
        samples: Maximum number of samples to collect.
        evals: Repetitions of the workload per sample.
        gctrial: Force a full collection before the trial starts.
        gcsample: Force a full collection before every sample.
        tolerance: Relative noise band used when judging ratios.
    """

    seconds: float = 5.0
    samples: int = 300
    evals: int = 1
    gctrial: bool = True
    gcsample: bool = False
    tolerance: float = 0.05

    def __post_init__(self) -> None:
        _raise_if_invalid(
            validate_fields(
                seconds=self.seconds,
                samples=self.samples,
                evals=self.evals,
                gctrial=self.gctrial,
                gcsample=self.gcsample,
                tolerance=self.tolerance,
            )
        )

    def replace(self, **changes: Any) -> Parameters:
        """Return a validated copy with *changes* applied."""
        unknown = sorted(set(changes) - set(PARAMETER_FIELDS))
        if unknown:
            raise ConfigurationError(f"Unknown parameter(s): {', '.join(unknown)}")
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Parameters:
        """Deserialize from a dict, ignoring unknown fields."""
        return cls(**{k: v for k, v in data.items() if k in PARAMETER_FIELDS})


# ---------------------------------------------------------------------------
# Process-wide defaults
# ---------------------------------------------------------------------------


@dataclass
class BenchDefaults:
    """Mutable process-wide defaults that new Parameters start from.

    Changing a field here only affects Parameters built afterwards.
    """

    seconds: float = 5.0
    samples: int = 300
    evals: int = 1
    gctrial: bool = True
    gcsample: bool = False
    tolerance: float = 0.05

    def validate(self) -> list[ValidationError]:
        return validate_fields(**dataclasses.asdict(self))


DEFAULTS = BenchDefaults()


def make_parameters(
    defaults: BenchDefaults | None = None,
    **overrides: Any,
) -> Parameters:
    """Build Parameters from *defaults* (or ``DEFAULTS``) plus overrides.

    Overrides whose value is ``None`` are treated as "not given", which
    lets CLI options pass straight through.

    Raises:
        ConfigurationError: On unknown names or invalid values.
    """
    base = dataclasses.asdict(defaults if defaults is not None else DEFAULTS)
    unknown = sorted(set(overrides) - set(PARAMETER_FIELDS))
    if unknown:
        raise ConfigurationError(f"Unknown parameter(s): {', '.join(unknown)}")
    base.update({k: v for k, v in overrides.items() if v is not None})
    return Parameters(**base)


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a parameter profile from a YAML file.

    Profile format::

        seconds: 2.5
        samples: 500
        gcsample: true
        tolerance: 0.02

    Returns:
        The parsed YAML as a dict (empty for an empty file).

    Raises:
        FileNotFoundError: If *profile_path* does not exist.
        ConfigurationError: If the file is not a YAML mapping.
    """
    import yaml

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    try:
        data = yaml.safe_load(profile_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in profile {profile_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Profile must be a YAML mapping, got {type(data).__name__}")
    return data


def defaults_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> BenchDefaults:
    """Build BenchDefaults from a parsed profile.

    CLI overrides (``None`` meaning "not given") take precedence over
    profile values, which take precedence over the built-in defaults.

    Raises:
        ConfigurationError: If the profile names unknown keys or the
            merged values are invalid.
    """
    unknown = sorted(set(profile_data) - set(PARAMETER_FIELDS))
    if unknown:
        raise ConfigurationError(
            f"Unknown profile key(s): {', '.join(unknown)}. "
            f"Valid keys: {', '.join(PARAMETER_FIELDS)}"
        )

    merged = dataclasses.asdict(BenchDefaults())
    merged.update(profile_data)
    for key, value in (cli_overrides or {}).items():
        if key in PARAMETER_FIELDS and value is not None:
            merged[key] = value

    defaults = BenchDefaults(**merged)
    _raise_if_invalid(defaults.validate())
    log.debug("Loaded defaults: %s", merged)
    return defaults
