"""
CureDesign: observation set and design matrices for flexible cure models.

Three layers, each immutable:

    CureDesign            validated, filtered observations (time, event,
                          entry, covariates, background hazard)
    ModelSpec             ordered basis-term descriptors composed from the
                          user's options; no data attached
    DesignMatrixBuilder   a ModelSpec with spline knots fixed from the
                          fitting sample; evaluates design rows on any data

build_design_matrices() combines them into X, XD, X_cr and the entry map
consumed by the likelihood. The row filter in CureDesign runs before
anything else, so every matrix shares the same effective sample.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Iterator, Literal

import numpy as np
from numpy.typing import NDArray

from pyflexcure.core.datasource import DataSource
from pyflexcure.core.exceptions import DimensionError, ValidationError
from pyflexcure.core.validation import (
    check_1d, check_array, check_choice, check_consistent_length, check_finite,
    check_positive,
)
from pyflexcure.cure._splines import NaturalSplineBasis, central_difference

ResponseKind = Literal['right', 'counting', 'interval', 'interval2', 'left', 'mstate']

SUPPORTED_RESPONSES = ('right', 'counting')
UNSUPPORTED_RESPONSES = ('interval', 'interval2', 'left', 'mstate')
SMALL_TIME = 1e-4


# =====================================================================
# Model specification
# =====================================================================

@dataclass(frozen=True)
class BasisTerm:
    """One block of design-matrix columns.

    kind is one of:
        'intercept'    a column of ones
        'linear'       the covariate itself
        'time_spline'  natural spline of log time with df columns
        'tvc'          covariate times a natural spline of log time
    """
    kind: Literal['intercept', 'linear', 'time_spline', 'tvc']
    covariate: str | None = None
    df: int | None = None

    @property
    def uses_time(self) -> bool:
        return self.kind in ('time_spline', 'tvc')

    def column_names(self, time_name: str) -> list[str]:
        if self.kind == 'intercept':
            return ['(Intercept)']
        if self.kind == 'linear':
            return [self.covariate]
        spline = f"ns(log({time_name}))"
        prefix = f"{self.covariate}:" if self.kind == 'tvc' else ""
        return [f"{prefix}{spline}[{j}]" for j in range(1, self.df + 1)]


@dataclass(frozen=True)
class ModelSpec:
    """Ordered basis terms of one linear predictor."""
    terms: tuple[BasisTerm, ...]

    @property
    def covariates(self) -> tuple[str, ...]:
        names = []
        for term in self.terms:
            if term.covariate is not None and term.covariate not in names:
                names.append(term.covariate)
        return tuple(names)

    @property
    def uses_time(self) -> bool:
        return any(term.uses_time for term in self.terms)


def build_model_spec(
    covariates=(),
    df: int = 3,
    tvc: Mapping[str, int] | None = None,
    baseoff: bool = False,
) -> ModelSpec:
    """Compose the specification of the uncured linear predictor.

    Terms are the intercept, linear covariate effects, the baseline time
    spline with df degrees of freedom and one time-varying term per entry
    of tvc. With baseoff=True the tvc terms replace the baseline spline.
    """
    if int(df) != df or df < 1:
        raise ValidationError(f"df: must be a positive integer, got {df!r}")
    tvc = dict(tvc or {})
    for name, k in tvc.items():
        if int(k) != k or k < 1:
            raise ValidationError(
                f"tvc: degrees of freedom for '{name}' must be a positive "
                f"integer, got {k!r}"
            )

    terms = [BasisTerm('intercept')]
    terms += [BasisTerm('linear', covariate=c) for c in covariates]
    tvc_terms = [BasisTerm('tvc', covariate=c, df=int(k)) for c, k in tvc.items()]
    if baseoff:
        if not tvc_terms:
            raise ValidationError("baseoff=True requires at least one tvc term")
        terms += tvc_terms
    else:
        terms += [BasisTerm('time_spline', df=int(df))] + tvc_terms
    return ModelSpec(terms=tuple(terms))


def build_cure_spec(cure_covariates=()) -> ModelSpec:
    """Specification of the cure-rate linear predictor (no time terms)."""
    terms = [BasisTerm('intercept')]
    terms += [BasisTerm('linear', covariate=c) for c in cure_covariates]
    return ModelSpec(terms=tuple(terms))


# =====================================================================
# Fitted builder
# =====================================================================

@dataclass(frozen=True)
class DesignMatrixBuilder:
    """A ModelSpec with its spline knots fixed.

    Holds everything needed to rebuild design rows on new data, so a
    fitted model can be evaluated at other times or covariate values.
    """
    spec: ModelSpec
    time_name: str
    bases: tuple[NaturalSplineBasis | None, ...]

    @classmethod
    def fit(
        cls,
        spec: ModelSpec,
        time_name: str,
        log_event_time: NDArray | None = None,
    ) -> DesignMatrixBuilder:
        """Place spline knots on the log event times."""
        bases = []
        for term in spec.terms:
            if term.uses_time:
                if log_event_time is None:
                    raise ValidationError(
                        "time-dependent terms need event times to place knots"
                    )
                bases.append(NaturalSplineBasis.from_data(log_event_time, term.df))
            else:
                bases.append(None)
        return cls(spec=spec, time_name=time_name, bases=tuple(bases))

    @property
    def column_names(self) -> tuple[str, ...]:
        names = []
        for term in self.spec.terms:
            names.extend(term.column_names(self.time_name))
        return tuple(names)

    @property
    def n_columns(self) -> int:
        return len(self.column_names)

    def matrix(
        self,
        columns: Mapping[str, NDArray],
        time: NDArray | None = None,
        *,
        n: int | None = None,
    ) -> NDArray:
        """Evaluate design rows.

        Args:
            columns: Covariate name → values.
            time: Evaluation times; required if the model has time terms.
            n: Number of rows when neither time nor any covariate fixes it.
        """
        if time is not None:
            time = np.atleast_1d(np.asarray(time, dtype=np.float64))
            n = len(time)
        elif self.spec.uses_time:
            raise ValidationError("time is required to evaluate time-dependent terms")
        if n is None:
            n = _n_rows(columns, self.spec.covariates)

        log_time = None
        if self.spec.uses_time:
            with np.errstate(divide='ignore', invalid='ignore'):
                log_time = np.log(time)

        blocks = []
        for term, basis in zip(self.spec.terms, self.bases):
            if term.kind == 'intercept':
                blocks.append(np.ones((n, 1)))
            elif term.kind == 'linear':
                blocks.append(_column(columns, term.covariate, n)[:, None])
            elif term.kind == 'time_spline':
                blocks.append(basis(log_time))
            else:
                blocks.append(_column(columns, term.covariate, n)[:, None]
                              * basis(log_time))
        return np.hstack(blocks)

    def derivative(self, columns: Mapping[str, NDArray], time: NDArray) -> NDArray:
        """d/dt of the design rows by central differences in time."""
        time = np.atleast_1d(np.asarray(time, dtype=np.float64))
        return central_difference(lambda t: self.matrix(columns, t), time)


def _column(columns: Mapping[str, NDArray], name: str, n: int) -> NDArray:
    if name not in columns:
        raise ValidationError(f"covariate '{name}' not found in data")
    values = check_array(columns[name], name).ravel()
    if len(values) != n:
        raise DimensionError(f"covariate '{name}' has {len(values)} rows, expected {n}")
    return values


def _n_rows(columns: Mapping[str, NDArray], preferred: tuple[str, ...]) -> int:
    for name in preferred + tuple(columns):
        if name in columns:
            return len(np.atleast_1d(columns[name]))
    raise ValidationError("cannot infer the number of rows: pass n or a covariate")


# =====================================================================
# Observations
# =====================================================================

@dataclass(frozen=True)
class CureDesign:
    """Immutable, filtered observation set.

    Parameters
    ----------
    time : NDArray
        Follow-up time, strictly positive.
    event : NDArray
        Boolean event indicator.
    entry : NDArray or None
        Entry (left-truncation) time, or None without delayed entry.
    columns : dict
        Covariate name → float values, plus the time column.
    bhazard : NDArray
        Background (expected) hazard at follow-up time.
    time_name : str
        Name of the time column, used for design column labels.
    n_dropped : int
        Rows removed by the missing-value filter.
    """

    time: NDArray
    event: NDArray
    entry: NDArray | None
    columns: dict[str, NDArray]
    bhazard: NDArray
    time_name: str = 'time'
    n_dropped: int = 0
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def for_cure_model(
        cls,
        data,
        *,
        time: str,
        event: str,
        entry: str | None = None,
        response: ResponseKind = 'right',
        covariates=(),
        bhazard=None,
    ) -> CureDesign:
        """Select, filter and validate the observations.

        Rows with a missing time, event, entry or covariate value are
        dropped first; every later check runs on the retained rows.

        Raises
        ------
        ValidationError
            Unsupported response kind, non-positive times, missing columns.
        DimensionError
            Background hazard vector does not match the retained rows.
        """
        if response in UNSUPPORTED_RESPONSES:
            raise ValidationError(
                f"response: not implemented for response type {response!r}; "
                f"only right-censored data with optional delayed entry is supported"
            )
        check_choice(response, SUPPORTED_RESPONSES, 'response')
        if response == 'counting' and entry is None:
            raise ValidationError("response 'counting' requires an entry column")

        source = DataSource.build(data)

        def get(name):
            try:
                values = check_array(source[name], name)
            except KeyError as e:
                raise ValidationError(str(e.args[0])) from e
            check_1d(values, name)
            return values

        names = list(dict.fromkeys([time, event] + ([entry] if entry else [])
                                   + list(covariates)))
        raw = {name: get(name) for name in names}
        check_consistent_length(*raw.values(), names=tuple(raw))

        bhazard_column = isinstance(bhazard, str)
        if bhazard_column:
            raw[bhazard] = get(bhazard)

        include = np.ones(len(raw[time]), dtype=bool)
        for values in raw.values():
            include &= ~np.isnan(values)
        raw = {name: values[include] for name, values in raw.items()}
        n_dropped = int(np.sum(~include))

        t = raw[time]
        check_finite(t, time)
        check_positive(t, time)
        status = _event_indicator(raw[event])

        t0 = None
        if entry is not None:
            t0 = raw[entry]
            if np.any(t0 < 0):
                raise ValidationError(f"{entry}: entry times must be non-negative")
            if np.any(t0 >= t):
                raise ValidationError(
                    f"{entry}: entry time must be strictly less than {time}"
                )

        messages = []
        if np.any(t < SMALL_TIME):
            messages.append(
                f"Some event times < {SMALL_TIME}: consider transforming time "
                f"to avoid problems with finite differences"
            )
        if t0 is not None and np.any((t0 > 0) & (t0 < SMALL_TIME)):
            messages.append(
                f"Some entry times < {SMALL_TIME}: consider transforming time "
                f"to avoid problems with finite differences"
            )
        for message in messages:
            warnings.warn(message, RuntimeWarning, stacklevel=3)

        n = len(t)
        if bhazard is None:
            bh = np.zeros(n)
        elif bhazard_column:
            bh = raw[bhazard]
        else:
            bh = check_array(bhazard, 'bhazard').ravel()
            if len(bh) != n:
                raise DimensionError(
                    f"Length of bhazard ({len(bh)}) is not the same as the "
                    f"number of retained observations ({n})"
                )
        if np.any(~np.isfinite(bh)) or np.any(bh < 0):
            raise ValidationError("bhazard: must be finite and non-negative")

        columns = {name: raw[name] for name in covariates}
        columns[time] = t

        return cls(
            time=t,
            event=status,
            entry=t0,
            columns=columns,
            bhazard=bh,
            time_name=time,
            n_dropped=n_dropped,
            warnings=tuple(messages),
        )

    @property
    def n(self) -> int:
        """Number of retained observations."""
        return len(self.time)

    @property
    def n_events(self) -> int:
        return int(np.sum(self.event))

    @property
    def delayed(self) -> bool:
        """True if any subject enters after time zero."""
        return self.entry is not None and bool(np.any(self.entry > 0))

    @property
    def excess(self) -> bool:
        """True if a non-zero background hazard is modelled."""
        return bool(np.any(self.bhazard != 0))


def _event_indicator(values: NDArray) -> NDArray:
    """A single distinct non-zero value means every subject had the event;
    otherwise an event is any value above the minimum."""
    unique = np.unique(values)
    if len(unique) == 1:
        return np.full(len(values), bool(unique[0] != 0))
    return values > unique[0]


# =====================================================================
# Design matrices
# =====================================================================

@dataclass(frozen=True)
class EntryMap:
    """Delayed-entry subjects and their design rows at entry time.

    Iterating yields (subject_index, X0_row) pairs in subject order.
    """
    subject_index: NDArray
    X0: NDArray

    def __iter__(self) -> Iterator[tuple[int, NDArray]]:
        for i, row in zip(self.subject_index, self.X0):
            yield int(i), row

    def __len__(self) -> int:
        return len(self.subject_index)


@dataclass(frozen=True)
class CureDesignMatrices:
    """Static inputs of the likelihood.

    X, XD: (n, p) design and its time derivative at follow-up time.
    X_cr:  (n, q) cure-rate design.
    entry: delayed-entry rows (possibly empty).
    """
    X: NDArray
    XD: NDArray
    X_cr: NDArray
    entry: EntryMap
    column_names: tuple[str, ...]
    cure_column_names: tuple[str, ...]


def build_design_matrices(
    design: CureDesign,
    spec: ModelSpec,
    cure_spec: ModelSpec,
) -> tuple[CureDesignMatrices, DesignMatrixBuilder, DesignMatrixBuilder]:
    """Evaluate all design matrices on the filtered sample.

    Spline knots are placed on the log follow-up times of subjects with
    an event.

    Returns
    -------
    (matrices, builder, cure_builder)
    """
    if design.n_events == 0:
        raise ValidationError("at least one event is required to fit the model")

    builder = DesignMatrixBuilder.fit(
        spec, design.time_name, np.log(design.time[design.event]),
    )
    cure_builder = DesignMatrixBuilder.fit(cure_spec, design.time_name)

    X = builder.matrix(design.columns, design.time)
    XD = builder.derivative(design.columns, design.time)

    if design.delayed:
        index = np.flatnonzero(design.entry > 0)
        columns0 = {name: values[index] for name, values in design.columns.items()}
        X0 = builder.matrix(columns0, design.entry[index])
    else:
        index = np.empty(0, dtype=np.intp)
        X0 = np.empty((0, X.shape[1]))

    X_cr = cure_builder.matrix(design.columns, n=design.n)

    matrices = CureDesignMatrices(
        X=X,
        XD=XD,
        X_cr=X_cr,
        entry=EntryMap(subject_index=index, X0=X0),
        column_names=builder.column_names,
        cure_column_names=cure_builder.column_names,
    )
    return matrices, builder, cure_builder
