"""Univariate moderator analyses via mixed-effects meta-regression."""

import numbers
from warnings import warn

import numpy as np
import pandas as pd
import scipy.stats as ss

from .core import records_to_arrays
from .exceptions import InsufficientDataError, InsufficientLevelsError, MissingCovariateError
from .results import ModeratorTestResult
from .stats import reml, z_crit
from .utils import _is_missing, _listify, requires_studies


def _is_numeric(value):
    return isinstance(value, numbers.Number) and not isinstance(value, (bool, np.bool_))


class ModeratorAnalyzer:
    """Test whether a study-level covariate is associated with effect size.

    Each moderator is tested on its own: the mixed-effects model
    ``y_i = b0 + x_i'b + u_i + e_i`` is fitted by REML and the moderator
    coefficients are tested jointly against zero with a Wald-type omnibus
    test (Q_M).

    Parameters
    ----------
    test : {"chi2", "F"}, optional
        "chi2" reports Q_M with a chi-square(m) reference distribution;
        "F" reports Q_M / m against F(m, k - m - 1). Default = "chi2".
    alpha : :obj:`float`, optional
        Alpha level for the coefficient CIs. Default = 0.05.
    tol, max_iter : optional
        Passed on to the REML routine.

    Notes
    -----
    Studies with a missing value for the tested moderator are left out of
    that test only. Non-numeric moderators are dummy coded, with the first
    level (in sorted order) as the reference category.
    """

    def __init__(self, test="chi2", alpha=0.05, tol=1e-8, max_iter=100):
        test = test.lower()
        if test not in {"chi2", "f"}:
            raise ValueError("Invalid test; must be one of 'chi2' or 'F'.")
        self.test = test
        self.alpha = alpha
        self.tol = tol
        self.max_iter = max_iter

    @requires_studies(2)
    def test_moderator(self, records, moderator, categorical=None):
        """Run the omnibus test for one moderator.

        Parameters
        ----------
        records : sequence of :obj:`~anxmeta.core.EffectSizeRecord`
        moderator : :obj:`str`
            Covariate name.
        categorical : :obj:`bool`, optional
            Force categorical (True) or continuous (False) coding. By default
            the moderator is categorical unless all its values are numeric.

        Returns
        -------
        :obj:`~anxmeta.results.ModeratorTestResult`

        Raises
        ------
        MissingCovariateError
            If no record carries the moderator.
        InsufficientLevelsError
            If the moderator takes fewer than two distinct values.
        InsufficientDataError
            If too few studies remain to estimate the model.
        """
        if not any(moderator in r.covariates for r in records):
            raise MissingCovariateError(moderator)

        kept = [r for r in records if not _is_missing(r.covariates.get(moderator))]
        n_dropped = len(records) - len(kept)
        if n_dropped:
            warn(
                "{} of {} studies have no value for moderator '{}' and are "
                "excluded from its test.".format(n_dropped, len(records), moderator)
            )

        values = [r.covariates[moderator] for r in kept]
        if categorical is None:
            categorical = not all(_is_numeric(x) for x in values)
        X, names = self._design(values, moderator, categorical)

        k, p = X.shape
        if k <= p:
            raise InsufficientDataError(
                "Moderator '{}' needs more than {} studies with non-missing "
                "values; got {}.".format(moderator, p, k)
            )

        y, v = records_to_arrays(kept)
        beta, cov, tau2, _ = reml(y, v, X, tol=self.tol, max_iter=self.max_iter)

        # omnibus Wald test on everything but the intercept
        b, C = beta[1:], cov[1:, 1:]
        qm = float(b.dot(np.linalg.solve(C, b)))
        m = p - 1
        df = (m, k - m - 1)
        if self.test == "chi2":
            stat, p_value = qm, ss.chi2.sf(qm, m)
        else:
            stat = qm / m
            p_value = ss.f.sf(stat, *df)

        return ModeratorTestResult(
            moderator_name=moderator,
            test_statistic=float(stat),
            p_value=float(p_value),
            df=df,
            test="chi2" if self.test == "chi2" else "F",
            k=k,
            tau_squared=float(tau2),
            coefficients=self._coef_table(names, beta, cov),
        )

    def test_moderators(self, records, moderators):
        """Test each moderator in turn; returns a list of results."""
        return [self.test_moderator(records, m) for m in _listify(moderators)]

    def _design(self, values, moderator, categorical):
        intercept = np.ones(len(values))
        if categorical:
            levels = set(values)
            if all(_is_numeric(x) for x in levels):
                levels = sorted(levels)
            else:
                levels = sorted(levels, key=str)
            if len(levels) < 2:
                raise InsufficientLevelsError(
                    "Moderator '{}' has {} distinct non-missing level(s); at "
                    "least 2 are required.".format(moderator, len(levels))
                )
            dummies = [[float(x == lvl) for x in values] for lvl in levels[1:]]
            names = ["intercept"] + ["{}[{}]".format(moderator, lvl) for lvl in levels[1:]]
            return np.column_stack([intercept] + dummies), names

        x = np.asarray(values, dtype=float)
        if len(np.unique(x)) < 2:
            raise InsufficientLevelsError(
                "Moderator '{}' is constant across studies.".format(moderator)
            )
        return np.column_stack([intercept, x]), ["intercept", moderator]

    def _coef_table(self, names, beta, cov):
        se = np.sqrt(np.diag(cov))
        z = beta / se
        crit = z_crit(self.alpha)
        return pd.DataFrame(
            {
                "name": names,
                "estimate": beta,
                "se": se,
                "z": z,
                "p": 2 * ss.norm.sf(np.abs(z)),
                "ci_l": beta - crit * se,
                "ci_u": beta + crit * se,
            }
        )


def moderator_table(results):
    """Stack the report rows of several moderator tests."""
    if not results:
        return pd.DataFrame(
            columns=["moderator", "k", "test", "statistic", "df_num", "df_den", "p", "tau^2"]
        )
    return pd.concat([r.to_df() for r in results], axis=0, ignore_index=True)
