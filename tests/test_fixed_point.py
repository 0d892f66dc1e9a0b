"""
Fixed-point arithmetic tests.

Truncation toward zero and per-term dot products are the two rules that
make results differ from naive integer math.
"""

import numpy as np

from sentiment_engine.core.fixed_point import (
    saturating_increment, scaled_dot, trunc_div, trunc_div_array,
)


class TestTruncDiv:

    def test_positive(self):
        assert trunc_div(7, 2) == 3

    def test_negative_numerator_truncates_toward_zero(self):
        assert trunc_div(-7, 2) == -3
        assert -7 // 2 == -4  # floor division would differ

    def test_negative_denominator(self):
        assert trunc_div(7, -2) == -3
        assert trunc_div(-7, -2) == 3

    def test_exact(self):
        assert trunc_div(-1000, 10) == -100

    def test_array(self):
        result = trunc_div_array(np.array([-5, 5, -4, 0]), 2)
        assert result.tolist() == [-2, 2, -2, 0]


class TestScaledDot:

    def test_each_term_divided_before_summing(self):
        a = np.array([1, 1])
        b = np.array([999, 999])
        # 999/1000 truncates to 0 per term; a single division would give 1
        assert scaled_dot(a, b) == 0

    def test_negative_terms_truncate_toward_zero(self):
        a = np.array([-1500, 1500])
        b = np.array([1, 1])
        # -1.5 -> -1 and 1.5 -> 1
        assert scaled_dot(a, b) == 0

    def test_unit_vectors(self):
        a = np.zeros(24, dtype=np.int64)
        a[0] = 1000
        assert scaled_dot(a, a) == 1000

    def test_returns_python_int(self):
        assert isinstance(scaled_dot(np.array([2000]), np.array([3000])), int)


def test_saturating_increment_caps():
    assert saturating_increment(0, 255) == 1
    assert saturating_increment(255, 255) == 255
    assert saturating_increment(65534, 65535, amount=5) == 65535
