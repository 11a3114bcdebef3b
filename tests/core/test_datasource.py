"""
Tests for DataSource construction and column access.
"""

import numpy as np
import pandas as pd
import pytest

from pyflexcure.core.datasource import DataSource
from pyflexcure.core.exceptions import DimensionError, ValidationError


class TestFromArrays:

    def test_columns_and_rows(self):
        ds = DataSource.from_arrays(time=[1.0, 2.0], event=[1, 0])
        assert ds.keys() == frozenset({"time", "event"})
        assert ds.n_observations == 2
        assert "time" in ds

    def test_unequal_lengths(self):
        with pytest.raises(DimensionError):
            DataSource.from_arrays(time=[1.0, 2.0], event=[1])

    def test_2d_rejected(self):
        with pytest.raises(DimensionError):
            DataSource.from_arrays(x=np.zeros((2, 2)))

    def test_missing_key_lists_available(self):
        ds = DataSource.from_arrays(time=[1.0])
        with pytest.raises(KeyError, match="Available"):
            ds["age"]


class TestFromDataFrame:

    def test_numeric_and_bool_become_float(self):
        df = pd.DataFrame({"time": [1, 2, 3], "event": [True, False, True],
                           "age": [50.0, None, 60.0], "sex": ["m", "f", "m"]})
        ds = DataSource.from_dataframe(df)
        assert ds["event"].dtype == np.float64
        assert np.isnan(ds["age"][1])
        assert ds["sex"].dtype == object
        assert ds.metadata["source"] == "dataframe"

    def test_build_dispatches_dataframe(self):
        df = pd.DataFrame({"time": [1.0, 2.0]})
        ds = DataSource.build(df)
        assert ds.n_observations == 2


class TestFromFile:

    def test_csv(self, tmp_path):
        path = tmp_path / "cure.csv"
        pd.DataFrame({"time": [1.5, 2.5], "event": [1, 0]}).to_csv(path, index=False)
        ds = DataSource.build(path)
        np.testing.assert_allclose(ds["time"], [1.5, 2.5])
        assert ds.metadata["source_path"] == str(path)

    def test_unknown_suffix(self, tmp_path):
        with pytest.raises(ValidationError, match="Unknown file format"):
            DataSource.from_file(tmp_path / "data.parquet")


class TestBuild:

    def test_datasource_returned_unchanged(self):
        ds = DataSource.from_arrays(time=[1.0])
        assert DataSource.build(ds) is ds

    def test_mapping(self):
        ds = DataSource.build({"time": np.array([1.0, 2.0])})
        assert ds.n_observations == 2

    def test_unsupported_type(self):
        with pytest.raises(ValidationError, match="expected DataFrame"):
            DataSource.build(42)
