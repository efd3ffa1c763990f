"""trialbench: calibrated micro-benchmarking with regression judgement."""

__version__ = "0.1.0"
