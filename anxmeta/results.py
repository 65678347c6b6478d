"""Tools for representing and reporting meta-analysis results."""

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
import scipy.stats as ss

from .core import records_to_arrays
from .stats import q_gen, q_profile, study_ci, z_crit


@dataclass(frozen=True)
class StudyFit:
    """A study's contribution to a fitted model."""

    record: object
    weight: float
    residual: float


@dataclass(frozen=True)
class FittedModel:
    """A fitted random- (or fixed-) effects meta-analysis.

    Instances are never modified; refitting produces a new object, so that a
    model before and after outlier removal can be compared side by side.

    Parameters
    ----------
    pooled_effect : :obj:`float`
        Inverse-variance weighted estimate of the overall effect.
    pooled_se : :obj:`float`
        Standard error of ``pooled_effect``.
    tau_squared : :obj:`float`
        Between-study variance (0 for fixed-effect models).
    confidence_interval : :obj:`tuple` of (:obj:`float`, :obj:`float`)
        Wald interval for the pooled effect with 1 - alpha coverage.
    records : :obj:`tuple` of :obj:`StudyFit`
        The studies the model was fit to, in input order, with their
        random-effects weight ``1 / (v + tau^2)`` and residual ``y - estimate``.
    alpha : :obj:`float`
        Significance level used for all intervals.
    method : :obj:`str`
        "REML" or "FE".
    n_iter : :obj:`int`
        Number of scoring iterations needed to estimate tau^2 (0 for "FE").
    """

    pooled_effect: float
    pooled_se: float
    tau_squared: float
    confidence_interval: tuple
    records: tuple
    alpha: float = 0.05
    method: str = "REML"
    n_iter: int = 0

    @property
    def k(self):
        """Number of studies."""
        return len(self.records)

    @property
    def study_ids(self):
        return [s.record.study_id for s in self.records]

    @property
    def z(self):
        return self.pooled_effect / self.pooled_se

    @property
    def p(self):
        """Two-tailed p-value for the pooled effect."""
        return float(2 * ss.norm.sf(abs(self.z)))

    def _arrays(self):
        y, v = records_to_arrays([s.record for s in self.records])
        return y, v, np.ones((len(y), 1))

    def get_heterogeneity_stats(self):
        """Compute heterogeneity statistics for the fitted model.

        Returns
        -------
        :obj:`dict`
            Cochran's Q (at tau^2 = 0), its degrees of freedom and p-value,
            I^2 (in percent) and H.

        Notes
        -----
        I^2 follows Higgins & Thompson (2002): ``max(0, (Q - df) / Q)``.
        """
        y, v, X = self._arrays()
        q = q_gen(y, v, X, 0.0)
        df = self.k - 1
        i2 = max(0.0, (q - df) / q) * 100 if q > 0 else 0.0
        h = np.sqrt(q / df) if df > 0 else np.nan
        return {"Q": q, "df": df, "p(Q)": float(ss.chi2.sf(q, df)), "I^2": i2, "H": float(h)}

    def get_re_stats(self):
        """Return tau^2 and its Q-profile confidence interval."""
        y, v, X = self._arrays()
        ci = q_profile(y, v, X, self.alpha)
        return {"tau^2": self.tau_squared, "ci_l": ci["ci_l"], "ci_u": ci["ci_u"]}

    def prediction_interval(self):
        """Interval expected to contain the true effect of a new study.

        Uses the normal approximation ``estimate +/- z * sqrt(se^2 + tau^2)``.
        """
        half = z_crit(self.alpha) * np.sqrt(self.pooled_se**2 + self.tau_squared)
        return (self.pooled_effect - half, self.pooled_effect + half)

    def to_df(self):
        """Return a forest-plot table: one row per study with its CI and weight."""
        y, v, _ = self._arrays()
        ci_l, ci_u = study_ci(y, v, self.alpha)
        weights = np.array([s.weight for s in self.records])
        return pd.DataFrame(
            {
                "study": self.study_ids,
                "estimate": y,
                "se": np.sqrt(v),
                "ci_l": ci_l,
                "ci_u": ci_u,
                "weight": weights,
                "weight_pct": 100 * weights / weights.sum(),
                "residual": [s.residual for s in self.records],
            }
        )


@dataclass(frozen=True)
class OutlierRemovalResult:
    """Outcome of iterated outlier detection and refitting.

    ``removed`` lists study ids in the order they were dropped.
    """

    initial_model: FittedModel
    model: FittedModel
    removed: tuple
    n_iterations: int


@dataclass(frozen=True)
class TrimFillResult:
    """Publication-bias adjusted estimate from trim-and-fill."""

    imputed_count: int
    adjusted_pooled_effect: float
    adjusted_confidence_interval: tuple
    side: str = "left"
    estimator: str = "R0"
    k0_se: float = np.nan
    imputed_effects: tuple = ()
    imputed_variances: tuple = ()
    model: FittedModel = field(default=None, repr=False)

    def to_df(self):
        """Return a funnel-plot table of observed and imputed studies."""
        # imputed studies are appended after the observed ones
        df = self.model.to_df().loc[:, ["study", "estimate", "se"]]
        df["imputed"] = np.arange(self.model.k) >= self.model.k - self.imputed_count
        return df


@dataclass(frozen=True)
class EggerTestResult:
    """Egger's regression test for funnel plot asymmetry."""

    intercept: float
    intercept_se: float
    p_value: float
    slope: float = np.nan
    t: float = np.nan
    df: int = 0


@dataclass(frozen=True)
class ModeratorTestResult:
    """Omnibus test of a single moderator in a mixed-effects meta-regression."""

    moderator_name: str
    test_statistic: float
    p_value: float
    df: tuple
    test: str = "chi2"
    k: int = 0
    tau_squared: float = np.nan
    coefficients: pd.DataFrame = field(default=None, repr=False, compare=False)

    def to_df(self):
        """One-row report table."""
        return pd.DataFrame(
            {
                "moderator": [self.moderator_name],
                "k": [self.k],
                "test": [self.test],
                "statistic": [self.test_statistic],
                "df_num": [self.df[0]],
                "df_den": [self.df[1]],
                "p": [self.p_value],
                "tau^2": [self.tau_squared],
            }
        )
