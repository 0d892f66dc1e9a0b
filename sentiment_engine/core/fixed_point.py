"""
Fixed-Point Arithmetic
======================

All engine arithmetic is integer arithmetic over values scaled by SCALE.

Division truncates toward zero (not floor), and dot products divide each
term by SCALE BEFORE summing. Both rules change results for negative
operands, so every replica must apply them exactly as written here.
"""

from __future__ import annotations
import numpy as np

from ..contracts.base import SCALE


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def trunc_div_array(values: np.ndarray, denominator: int) -> np.ndarray:
    """Element-wise truncating division by a positive denominator."""
    values = values.astype(np.int64)
    return np.sign(values) * (np.abs(values) // denominator)


def scaled_dot(a: np.ndarray, b: np.ndarray) -> int:
    """sum(trunc(a_i * b_i / SCALE)) computed per term."""
    products = a.astype(np.int64) * b.astype(np.int64)
    return int(trunc_div_array(products, SCALE).sum())


def saturating_increment(value: int, cap: int, amount: int = 1) -> int:
    """Add without ever exceeding cap."""
    return min(value + amount, cap)
