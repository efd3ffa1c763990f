"""Tests for trialbench.bench.config: parameters, defaults and profiles."""

from __future__ import annotations

import dataclasses
import tempfile
import unittest
from pathlib import Path

from trialbench.bench.config import (
    DEFAULTS,
    BenchDefaults,
    Parameters,
    defaults_from_profile,
    load_profile,
    make_parameters,
    validate_fields,
)
from trialbench.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Parameters tests
# ---------------------------------------------------------------------------


class TestParameters(unittest.TestCase):
    """Tests for the Parameters dataclass."""

    def test_defaults(self) -> None:
        p = Parameters()
        self.assertEqual(p.seconds, 5.0)
        self.assertEqual(p.samples, 300)
        self.assertEqual(p.evals, 1)
        self.assertTrue(p.gctrial)
        self.assertFalse(p.gcsample)
        self.assertEqual(p.tolerance, 0.05)

    def test_frozen(self) -> None:
        p = Parameters()
        with self.assertRaises(dataclasses.FrozenInstanceError):
            p.evals = 10  # type: ignore[misc]

    def test_invalid_seconds(self) -> None:
        for bad in (0, -1.0, float("nan"), "5"):
            with self.subTest(bad=bad), self.assertRaises(ConfigurationError):
                Parameters(seconds=bad)  # type: ignore[arg-type]

    def test_invalid_samples(self) -> None:
        for bad in (0, -3, 2.5, True):
            with self.subTest(bad=bad), self.assertRaises(ConfigurationError):
                Parameters(samples=bad)  # type: ignore[arg-type]

    def test_invalid_evals(self) -> None:
        with self.assertRaises(ConfigurationError):
            Parameters(evals=0)

    def test_invalid_tolerance(self) -> None:
        for bad in (0, -0.1, 1.5, float("nan")):
            with self.subTest(bad=bad), self.assertRaises(ConfigurationError):
                Parameters(tolerance=bad)

    def test_tolerance_one_is_valid(self) -> None:
        self.assertEqual(Parameters(tolerance=1).tolerance, 1)

    def test_boolean_fields_must_be_bool(self) -> None:
        with self.assertRaises(ConfigurationError):
            Parameters(gctrial=1)  # type: ignore[arg-type]
        with self.assertRaises(ConfigurationError):
            Parameters(gcsample="yes")  # type: ignore[arg-type]

    def test_error_lists_every_invalid_field(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            Parameters(seconds=0, samples=0)
        message = str(ctx.exception)
        self.assertIn("seconds", message)
        self.assertIn("samples", message)

    def test_configuration_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            Parameters(evals=-1)

    def test_replace_returns_new_value(self) -> None:
        p = Parameters()
        q = p.replace(evals=1000)
        self.assertEqual(q.evals, 1000)
        self.assertEqual(p.evals, 1)

    def test_replace_validates(self) -> None:
        with self.assertRaises(ConfigurationError):
            Parameters().replace(samples=0)

    def test_replace_unknown_field(self) -> None:
        with self.assertRaises(ConfigurationError):
            Parameters().replace(iterations=3)

    def test_dict_round_trip(self) -> None:
        p = Parameters(seconds=1.5, samples=10, evals=7, gcsample=True, tolerance=0.2)
        self.assertEqual(Parameters.from_dict(p.to_dict()), p)

    def test_from_dict_ignores_unknown(self) -> None:
        p = Parameters.from_dict({"evals": 3, "legacy": "x"})
        self.assertEqual(p.evals, 3)


class TestValidateFields(unittest.TestCase):
    def test_valid(self) -> None:
        self.assertEqual(validate_fields(**dataclasses.asdict(Parameters())), [])

    def test_reports_field_names(self) -> None:
        fields = dataclasses.asdict(Parameters())
        fields["evals"] = 0
        fields["tolerance"] = 2.0
        errors = validate_fields(**fields)
        self.assertEqual(sorted(e.field for e in errors), ["evals", "tolerance"])


# ---------------------------------------------------------------------------
# Defaults and overrides
# ---------------------------------------------------------------------------


class TestMakeParameters(unittest.TestCase):
    def setUp(self) -> None:
        self._saved = dataclasses.asdict(DEFAULTS)

    def tearDown(self) -> None:
        for key, value in self._saved.items():
            setattr(DEFAULTS, key, value)

    def test_uses_process_defaults(self) -> None:
        self.assertEqual(make_parameters(), Parameters())

    def test_override(self) -> None:
        p = make_parameters(samples=10, gcsample=True)
        self.assertEqual(p.samples, 10)
        self.assertTrue(p.gcsample)
        self.assertEqual(p.seconds, 5.0)

    def test_none_override_is_ignored(self) -> None:
        self.assertEqual(make_parameters(seconds=None).seconds, 5.0)

    def test_unknown_override(self) -> None:
        with self.assertRaises(ConfigurationError):
            make_parameters(warmup=2)

    def test_changed_defaults_apply_to_new_parameters_only(self) -> None:
        before = make_parameters()
        DEFAULTS.samples = 42
        after = make_parameters()
        self.assertEqual(before.samples, 300)
        self.assertEqual(after.samples, 42)

    def test_explicit_defaults_object(self) -> None:
        p = make_parameters(BenchDefaults(seconds=1.0), evals=5)
        self.assertEqual(p.seconds, 1.0)
        self.assertEqual(p.evals, 5)

    def test_invalid_defaults_fail_on_use(self) -> None:
        with self.assertRaises(ConfigurationError):
            make_parameters(BenchDefaults(tolerance=0.0))


# ---------------------------------------------------------------------------
# YAML profiles
# ---------------------------------------------------------------------------


class TestProfiles(unittest.TestCase):
    def _write(self, text: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
        tmp.write(text)
        tmp.close()
        path = Path(tmp.name)
        self.addCleanup(path.unlink)
        return path

    def test_load_profile(self) -> None:
        path = self._write("seconds: 2.5\nsamples: 50\ngcsample: true\n")
        self.assertEqual(load_profile(path), {"seconds": 2.5, "samples": 50, "gcsample": True})

    def test_load_empty_profile(self) -> None:
        self.assertEqual(load_profile(self._write("")), {})

    def test_load_missing_profile(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_profile(Path("/nonexistent/profile.yaml"))

    def test_load_non_mapping(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_profile(self._write("- 1\n- 2\n"))

    def test_load_invalid_yaml(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_profile(self._write("samples: [1, 2\n"))

    def test_defaults_from_profile(self) -> None:
        defaults = defaults_from_profile({"samples": 50, "tolerance": 0.01})
        self.assertEqual(defaults.samples, 50)
        self.assertEqual(defaults.tolerance, 0.01)
        self.assertEqual(defaults.seconds, 5.0)

    def test_cli_overrides_win(self) -> None:
        defaults = defaults_from_profile(
            {"samples": 50},
            cli_overrides={"samples": 7, "seconds": None},
        )
        self.assertEqual(defaults.samples, 7)
        self.assertEqual(defaults.seconds, 5.0)

    def test_unknown_profile_key(self) -> None:
        with self.assertRaises(ConfigurationError) as ctx:
            defaults_from_profile({"iterations": 5})
        self.assertIn("iterations", str(ctx.exception))

    def test_invalid_profile_value(self) -> None:
        with self.assertRaises(ConfigurationError):
            defaults_from_profile({"samples": 0})


if __name__ == "__main__":
    unittest.main()
