"""
Universal DataSource for pyflexcure.

DataSource is the "I have a table" abstraction. It knows nothing about
survival or cure models; it only hands out named columns. The cure design
pulls the time, event, entry, covariate and background hazard columns it
needs and validates them itself.

Usage:
    from pyflexcure.core.datasource import DataSource

    ds = DataSource.from_arrays(time=t, status=d, age=age)
    ds = DataSource.from_file("colon.csv")
    ds = DataSource.from_dataframe(df)

    ds.keys()        # frozenset({'time', 'status', 'age'})
    t = ds['time']
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TYPE_CHECKING
import numpy as np

from pyflexcure.core.exceptions import DimensionError, ValidationError

if TYPE_CHECKING:
    import pandas as pd


@dataclass
class DataSource:
    """
    Column container. Domain-agnostic.

    Construct via factory classmethods, not directly.
    """
    _data: dict[str, Any]
    _metadata: dict[str, Any] = field(default_factory=dict)

    def keys(self) -> frozenset[str]:
        """Return the names of all available columns."""
        return frozenset(self._data.keys())

    def __getitem__(self, key: str) -> Any:
        """
        Access a named column.

        Raises:
            KeyError: If key not found, with the available names listed
        """
        if key not in self._data:
            available = sorted(self.keys())
            raise KeyError(
                f"DataSource has no column '{key}'. Available: {available}"
            )
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def n_observations(self) -> int:
        """Number of rows."""
        return self._metadata.get('n_observations', 0)

    @property
    def metadata(self) -> dict[str, Any]:
        return self._metadata.copy()

    # === Factory Methods ===

    @classmethod
    def from_arrays(cls, **named_arrays) -> DataSource:
        """Construct from equally long 1D arrays, one per column."""
        storage: dict[str, Any] = {}
        n_obs: int | None = None

        for name, arr in named_arrays.items():
            arr = np.asarray(arr)
            if arr.ndim != 1:
                raise DimensionError(
                    f"column '{name}': expected 1D array, got shape {arr.shape}"
                )
            if n_obs is not None and arr.shape[0] != n_obs:
                raise DimensionError(
                    f"column '{name}' has {arr.shape[0]} rows, expected {n_obs}"
                )
            n_obs = arr.shape[0]
            storage[name] = arr

        return cls(
            _data=storage,
            _metadata={'n_observations': n_obs or 0, 'source': 'arrays'},
        )

    @classmethod
    def from_file(cls, path: str | Path, *, columns: list[str] | None = None) -> DataSource:
        """Construct from a CSV/TSV file."""
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix in ('.csv', '.tsv'):
            import pandas as pd
            sep = '\t' if suffix == '.tsv' else ','
            df = pd.read_csv(path, usecols=columns, sep=sep)
            return cls.from_dataframe(df, source_path=str(path))
        raise ValidationError(f"Unknown file format: {suffix}")

    @classmethod
    def from_dataframe(cls, df: 'pd.DataFrame', *, source_path: str | None = None) -> DataSource:
        """Construct from a pandas DataFrame.

        Numeric and boolean columns become float64 with NaN for missing
        values; other columns are kept as they are and only rejected if a
        model actually uses them.
        """
        import pandas as pd

        storage: dict[str, Any] = {}

        for col in df.columns:
            series = df[col]
            if pd.api.types.is_bool_dtype(series) or pd.api.types.is_numeric_dtype(series):
                storage[str(col)] = series.to_numpy(dtype=np.float64, na_value=np.nan)
            else:
                storage[str(col)] = series.to_numpy()

        metadata = {
            'n_observations': len(df),
            'source': 'dataframe',
            'columns': [str(c) for c in df.columns],
        }
        if source_path:
            metadata['source_path'] = source_path

        return cls(_data=storage, _metadata=metadata)

    @classmethod
    def build(cls, data, **kwargs) -> DataSource:
        """
        Dispatch to the appropriate from_* method.

        Examples:
            DataSource.build(df)            # from_dataframe
            DataSource.build("data.csv")    # from_file
            DataSource.build({'t': t})      # from_arrays
            DataSource.build(ds)            # returned unchanged
        """
        if isinstance(data, DataSource):
            return data
        if isinstance(data, (str, Path)):
            return cls.from_file(data, **kwargs)
        if isinstance(data, Mapping):
            return cls.from_arrays(**data)
        if hasattr(data, 'columns') and hasattr(data, 'to_numpy'):
            return cls.from_dataframe(data, **kwargs)
        raise ValidationError(
            f"data: expected DataFrame, mapping, DataSource or path, "
            f"got {type(data).__name__}"
        )
