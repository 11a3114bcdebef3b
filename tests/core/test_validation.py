"""
Tests for input validation utilities.
"""

import numpy as np
import pytest

from pyflexcure.core.exceptions import DimensionError, ValidationError
from pyflexcure.core.validation import (
    check_1d,
    check_array,
    check_choice,
    check_consistent_length,
    check_finite,
    check_positive,
)


class TestCheckArray:

    def test_list_to_float_array(self):
        result = check_array([1, 2, 3], "time")
        assert np.issubdtype(result.dtype, np.floating)
        np.testing.assert_array_equal(result, [1.0, 2.0, 3.0])

    def test_bool_converted_to_float(self):
        result = check_array(np.array([True, False]), "event")
        np.testing.assert_array_equal(result, [1.0, 0.0])

    def test_nan_allowed(self):
        result = check_array([1.0, np.nan], "time")
        assert np.isnan(result[1])

    def test_strings_rejected(self):
        with pytest.raises(ValidationError, match="non-numeric"):
            check_array(np.array(["a", "b"]), "group")

    def test_object_rejected(self):
        with pytest.raises(ValidationError):
            check_array(np.array([1, "a"], dtype=object), "x")


class TestCheckFinite:

    def test_passes(self):
        check_finite(np.array([1.0, 2.0]), "x")

    def test_nan_and_inf_counted(self):
        with pytest.raises(ValidationError, match="1 NaN, 1 Inf"):
            check_finite(np.array([np.nan, np.inf, 1.0]), "x")


class TestCheck1d:

    def test_passes(self):
        check_1d(np.zeros(3), "x")

    def test_2d_rejected(self):
        with pytest.raises(DimensionError, match="expected 1D"):
            check_1d(np.zeros((3, 2)), "x")


class TestCheckConsistentLength:

    def test_passes(self):
        check_consistent_length(np.zeros(3), np.ones(3), names=("a", "b"))

    def test_mismatch(self):
        with pytest.raises(DimensionError, match="a=3, b=4"):
            check_consistent_length(np.zeros(3), np.ones(4), names=("a", "b"))

    def test_names_count_must_match(self):
        with pytest.raises(ValueError):
            check_consistent_length(np.zeros(3), np.ones(3), names=("a",))


class TestCheckPositive:

    def test_passes(self):
        check_positive(np.array([0.1, 2.0]), "time")

    def test_zero_rejected(self):
        with pytest.raises(ValidationError, match="index 1"):
            check_positive(np.array([1.0, 0.0, -1.0]), "time")


class TestCheckChoice:

    def test_passes(self):
        check_choice("PH", ("PH", "PO"), "link_type")

    def test_rejected_lists_valid(self):
        with pytest.raises(ValidationError, match="'PH', 'PO'"):
            check_choice("AH", ("PH", "PO"), "link_type")
