"""Benchmarking engine for trialbench.

Tunes how many evaluations of a workload make up one reliably
measurable sample, runs a bounded series of samples, reduces them to
point estimates and judges two estimates as regression, improvement or
noise.
"""
