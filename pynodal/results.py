"""Helpers for reading analysis result tables."""

from __future__ import annotations
from typing import Sequence

import jax.numpy as jnp


def interpolate(t: float, times: Sequence[float], values: Sequence[float]) -> float | None:
    """
    Linear interpolation of values at t.

    Before the first sample the first value is returned; past the last
    sample the result is None.
    """
    if values is None:
        return None
    for i in range(len(times)):
        if t < times[i]:
            if i == 0:
                return float(values[0])
            t1, t2 = times[i - 1], times[i]
            v1, v2 = values[i - 1], values[i]
            v = float(v1)
            if t != t1:
                v += float((t - t1) * (v2 - v1) / (t2 - t1))
            return v
    if len(times) and t == times[-1]:
        return float(values[-1])
    return None


def sample(result: dict, label: str, points: Sequence[float],
           axis: str = "_time_") -> list[tuple[float, float | None]]:
    """
    Values of one trace at the given axis points.

    Example:
        sample(tran_result, "out", [0.5e-3, 1e-3])   # [(0.0005, 0.39), (0.001, 0.63)]
    """
    times = [float(t) for t in result[axis]]
    values = [float(v) for v in result[label]]
    return [(t, interpolate(t, times, values)) for t in points]


def to_db(magnitudes):
    """Convert linear magnitudes to decibels (20 log10)."""
    return 20.0 * jnp.log10(jnp.asarray(magnitudes))
