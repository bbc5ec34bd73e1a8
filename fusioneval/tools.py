"""Small numeric helpers and shared constants."""

from __future__ import annotations

from typing import Iterable

import numpy as np

GRAVITY = np.array([0.0, 0.0, 9.80834])
"""Gravity vector at 47.37 degrees latitude, in m/s^2."""

INVALID_TIME = -1.0
INVALID_SEQUENCE = -1
INVALID_ID = -1


def get_median(data: Iterable[float]) -> float:
    """Return the element at position ``n // 2`` of the sorted values.

    For an even number of values this is the upper of the two middle
    elements. An empty input yields ``0``. The input is left untouched.
    """
    values = np.array(list(data), dtype=float).ravel()
    if values.size == 0:
        return 0.0
    middle = values.size // 2
    return float(np.partition(values, middle)[middle])


def is_approx(a, b, precision: float) -> bool:
    """Tell whether two arrays agree up to a relative precision.

    ``a`` and ``b`` are close when the Frobenius norm of their difference
    is at most ``precision`` times the smaller of their norms.
    """
    left = np.asarray(a, dtype=float)
    right = np.asarray(b, dtype=float)
    if left.shape != right.shape:
        raise ValueError(
            f"shape mismatch: {left.shape} and {right.shape}"
        )
    diff = float(np.sum((left - right) ** 2))
    smaller = min(float(np.sum(left**2)), float(np.sum(right**2)))
    return diff <= precision * precision * smaller