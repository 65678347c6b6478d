"""Core data entities and conversion from tabular input."""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

import numpy as np
import pandas as pd

from .exceptions import InvalidRecordError
from .utils import _is_missing, _listify


class OutcomeGroup(Enum):
    """Rater perspective of an anxiety outcome."""

    SELF = "self"
    CLINICIAN = "clinician"
    PARENT = "parent"

    @classmethod
    def parse(cls, value):
        """Return the group matching ``value`` (a member or its case-insensitive name)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidRecordError(
                "Unknown outcome group {!r}; expected one of {}.".format(
                    value, [g.value for g in cls]
                )
            ) from None


@dataclass(frozen=True)
class EffectSizeRecord:
    """One study's observed effect size (Hedges' g) and its standard error.

    Parameters
    ----------
    study_id : :obj:`str`
        Study label (e.g., "Author et al. 2012"). Must be unique within a
        record set.
    effect : :obj:`float`
        Observed effect size.
    standard_error : :obj:`float`
        Standard error of ``effect``; must be finite and strictly positive.
    outcome_group : :obj:`OutcomeGroup` or :obj:`str`
        Rater perspective the effect was measured with.
    covariates : :obj:`dict`, optional
        Study-level moderators, keyed by name. Missing values are stored as
        None. The mapping is copied and exposed read-only.
    sample_size : :obj:`int`, optional
        Total sample size of the study, if known.
    """

    study_id: str
    effect: float
    standard_error: float
    outcome_group: OutcomeGroup
    covariates: dict = field(default_factory=dict, hash=False)
    sample_size: int = None

    def __post_init__(self):
        # frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(self, "study_id", str(self.study_id))
        object.__setattr__(self, "outcome_group", OutcomeGroup.parse(self.outcome_group))
        object.__setattr__(self, "covariates", MappingProxyType(dict(self.covariates or {})))

        try:
            effect = float(self.effect)
            se = float(self.standard_error)
        except (TypeError, ValueError):
            raise InvalidRecordError(
                "Study {!r}: effect and standard error must be numeric.".format(self.study_id)
            ) from None
        if not (math.isfinite(effect) and math.isfinite(se)):
            raise InvalidRecordError(
                "Study {!r}: effect ({}) and standard error ({}) must be finite.".format(
                    self.study_id, self.effect, self.standard_error
                )
            )
        if se <= 0:
            raise InvalidRecordError(
                "Study {!r}: standard error must be > 0, got {}.".format(self.study_id, se)
            )
        object.__setattr__(self, "effect", effect)
        object.__setattr__(self, "standard_error", se)

    @property
    def variance(self):
        """Sampling variance (squared standard error)."""
        return self.standard_error**2


def records_to_arrays(records):
    """Stack effects and sampling variances of ``records`` into 1d arrays."""
    y = np.array([r.effect for r in records], dtype=float)
    v = np.array([r.variance for r in records], dtype=float)
    return y, v


def filter_group(records, group):
    """Return the records measured from one rater perspective, in input order."""
    group = OutcomeGroup.parse(group)
    return [r for r in records if r.outcome_group is group]


def records_from_df(data, study="study", group="group", y="g", se="se", n=None, covariates=None):
    """Build effect size records from a DataFrame with one row per study and outcome group.

    Parameters
    ----------
    data : :obj:`pandas.DataFrame`
        Input table.
    study, group, y, se : :obj:`str`, optional
        Names of the columns holding the study label, the outcome group,
        the effect size and its standard error.
    n : :obj:`str`, optional
        Name of the sample size column. Default = None (no sample sizes).
    covariates : :obj:`str` or :obj:`list` of :obj:`str`, optional
        Names of moderator columns. Empty cells become None.

    Returns
    -------
    :obj:`list` of :obj:`EffectSizeRecord`

    Raises
    ------
    InvalidRecordError
        If any row has a non-finite effect or a non-positive standard error.
    """
    covariates = _listify(covariates) or []
    missing = [c for c in [study, group, y, se, n, *covariates] if c and c not in data.columns]
    if missing:
        raise ValueError("Columns not found in data: {}".format(missing))

    records = []
    for _, row in data.iterrows():
        covs = {c: (None if _is_missing(row[c]) else row[c]) for c in covariates}
        size = None
        if n is not None and not _is_missing(row[n]):
            size = int(row[n])
        records.append(
            EffectSizeRecord(
                study_id=row[study],
                effect=row[y],
                standard_error=row[se],
                outcome_group=row[group],
                covariates=covs,
                sample_size=size,
            )
        )
    return records


def records_to_df(records):
    """Convert records back to a DataFrame (one column per covariate)."""
    rows = []
    for r in records:
        row = {
            "study": r.study_id,
            "group": r.outcome_group.value,
            "g": r.effect,
            "se": r.standard_error,
            "n": r.sample_size,
        }
        row.update(r.covariates)
        rows.append(row)
    return pd.DataFrame(rows)
