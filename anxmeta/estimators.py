"""Meta-analysis estimator classes."""

from abc import ABCMeta, abstractmethod

import numpy as np

from .core import records_to_arrays
from .results import FittedModel, StudyFit
from .stats import reml, weighted_least_squares, z_crit
from .utils import requires_studies


class BaseEstimator(metaclass=ABCMeta):
    """Base class for intercept-only meta-analysis estimators.

    Subclasses implement :meth:`_estimate`, which works on plain arrays;
    :meth:`fit` takes care of validation and of packaging a
    :class:`~anxmeta.results.FittedModel`.

    Parameters
    ----------
    alpha : :obj:`float`, optional
        Desired alpha level (CIs will have 1 - alpha coverage). Default = 0.05.
    """

    method = None

    def __init__(self, alpha=0.05):
        if not 0 < alpha < 1:
            raise ValueError("alpha must be in (0, 1); got {}.".format(alpha))
        self.alpha = alpha

    @abstractmethod
    def _estimate(self, y, v, X):
        """Return ``(beta, cov, tau2, n_iter)`` for the given arrays."""
        pass

    @requires_studies(2)
    def fit(self, records):
        """Fit the model to a set of effect size records.

        Parameters
        ----------
        records : sequence of :obj:`~anxmeta.core.EffectSizeRecord`
            At least two studies with unique ids.

        Returns
        -------
        :obj:`~anxmeta.results.FittedModel`

        Raises
        ------
        InsufficientDataError
            If fewer than two records are passed.
        """
        y, v = records_to_arrays(records)
        X = np.ones((len(y), 1))
        beta, cov, tau2, n_iter = self._estimate(y, v, X)

        estimate = float(beta[0])
        se = float(np.sqrt(cov[0, 0]))
        crit = z_crit(self.alpha)
        w = 1.0 / (v + tau2)
        studies = tuple(
            StudyFit(record=r, weight=float(wi), residual=float(yi - estimate))
            for r, wi, yi in zip(records, w, y)
        )
        return FittedModel(
            pooled_effect=estimate,
            pooled_se=se,
            tau_squared=float(tau2),
            confidence_interval=(estimate - crit * se, estimate + crit * se),
            records=studies,
            alpha=self.alpha,
            method=self.method,
            n_iter=n_iter,
        )


class FixedEffectEstimator(BaseEstimator):
    """Inverse-variance weighted fixed-effect meta-analysis (tau^2 = 0)."""

    method = "FE"

    def _estimate(self, y, v, X):
        beta, cov = weighted_least_squares(y, v, X, return_cov=True)
        return beta, cov, 0.0, 0


class RandomEffectsEstimator(BaseEstimator):
    """Random-effects meta-analysis with tau^2 estimated by REML.

    Fits ``y_i = theta + u_i + e_i`` with ``e_i ~ N(0, v_i)`` and
    ``u_i ~ N(0, tau^2)``. tau^2 is found by Fisher scoring on the restricted
    likelihood, started from the DerSimonian-Laird estimate and truncated at
    zero; the pooled effect is the weighted mean with weights
    ``1 / (v_i + tau^2)``.

    Parameters
    ----------
    alpha : :obj:`float`, optional
        Desired alpha level (CIs will have 1 - alpha coverage). Default = 0.05.
    tol : :obj:`float`, optional
        Convergence threshold on successive tau^2 values. Default = 1e-8.
    max_iter : :obj:`int`, optional
        Maximum number of scoring iterations. Default = 100.

    Notes
    -----
    Estimation is a pure function of the records and these settings; fitting
    the same records twice gives identical results.

    References
    ----------
    Viechtbauer, W. (2005). Bias and efficiency of meta-analytic variance
    estimators in the random-effects model. Journal of Educational and
    Behavioral Statistics, 30(3), 261-293.
    """

    method = "REML"

    def __init__(self, alpha=0.05, tol=1e-8, max_iter=100):
        super().__init__(alpha)
        if max_iter < 1:
            raise ValueError("max_iter must be at least 1.")
        self.tol = tol
        self.max_iter = max_iter

    def _estimate(self, y, v, X):
        return reml(y, v, X, tol=self.tol, max_iter=self.max_iter)


def meta_analysis(records, method="REML", alpha=0.05, **kwargs):
    """Fit a meta-analysis to ``records``.

    Parameters
    ----------
    records : sequence of :obj:`~anxmeta.core.EffectSizeRecord`
    method : {"REML", "FE"}, optional
        Name of estimation method. Default = 'REML'.
    alpha : :obj:`float`, optional
        Desired alpha level (CIs will have 1 - alpha coverage). Default = 0.05.
    **kwargs
        Optional keyword arguments to pass onto the chosen estimator.

    Returns
    -------
    :obj:`~anxmeta.results.FittedModel`
    """
    est_cls = {
        "reml": RandomEffectsEstimator,
        "fe": FixedEffectEstimator,
    }.get(method.lower())
    if est_cls is None:
        raise ValueError("Unknown method {!r}; choose 'REML' or 'FE'.".format(method))
    return est_cls(alpha=alpha, **kwargs).fit(records)
