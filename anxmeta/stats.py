"""Miscellaneous statistical functions.

Everything here operates on plain 1d/2d numpy arrays: ``y`` and ``v`` are
vectors of length K (studies) and ``X`` is a K x P design matrix that already
includes the intercept column.
"""

import numpy as np
import scipy.stats as ss
from scipy.optimize import Bounds, minimize

from .exceptions import NonConvergentEstimationError


def weighted_least_squares(y, v, X, tau2=0.0, return_cov=False):
    """Perform weighted least squares.

    Parameters
    ----------
    y : :obj:`numpy.ndarray` of shape (K,)
        Study-level estimates.
    v : :obj:`numpy.ndarray` of shape (K,)
        Study-level sampling variances.
    X : :obj:`numpy.ndarray` of shape (K, P)
        Fixed effect design matrix.
    tau2 : :obj:`float`, optional
        tau^2 estimate to use for weights.
        Default = 0.
    return_cov : :obj:`bool`, optional
        Whether or not to return the inverse of X'WX (the covariance matrix
        of the coefficients). Default = False.

    Returns
    -------
    beta[, cov]
        If return_cov is True, returns both fixed parameter estimates and the
        covariance matrix; if False, only the parameter estimates.
    """
    w = 1.0 / (v + tau2)
    wX = X.T * w
    cov = np.linalg.pinv(wX.dot(X))
    beta = cov.dot(wX).dot(y)
    return (beta, cov) if return_cov else beta


def dersimonian_laird(y, v, X):
    """Estimate tau^2 with the DerSimonian-Laird method of moments.

    Used as the starting value for the REML iterations.
    """
    k, p = X.shape
    w = 1.0 / v
    beta, cov = weighted_least_squares(y, v, X, return_cov=True)
    Q = (w * (y - X.dot(beta)) ** 2).sum()
    A = w.sum() - np.trace(cov.dot((X.T * w**2).dot(X)))
    if A <= 0:
        return 0.0
    return max(0.0, float((Q - (k - p)) / A))


def _projection(v, X, tau2):
    w = 1.0 / (v + tau2)
    W = np.diag(w)
    WX = W.dot(X)
    return W - WX.dot(np.linalg.pinv(X.T.dot(WX))).dot(WX.T)


def _reml_score(y, v, X, tau2):
    P = _projection(v, X, tau2)
    Py = P.dot(y)
    return Py.dot(Py) - np.trace(P), np.sum(P * P)


def reml(y, v, X, tau2_init=None, tol=1e-8, max_iter=100):
    """Estimate tau^2 and the fixed effects by restricted maximum likelihood.

    Fisher scoring on the restricted log-likelihood of the model
    ``y = X b + u + e`` with ``u ~ N(0, tau^2)`` and ``e ~ N(0, v)``.
    The iterates keep a bracket around the root of the score. A step that
    leaves the bracket, or that fails to halve the previous change once the
    bracket is closed, is replaced by bisection. A step below zero is tried
    once at the boundary.

    Parameters
    ----------
    y : :obj:`numpy.ndarray` of shape (K,)
        Study-level estimates.
    v : :obj:`numpy.ndarray` of shape (K,)
        Study-level sampling variances.
    X : :obj:`numpy.ndarray` of shape (K, P)
        Design matrix, including the intercept.
    tau2_init : :obj:`float`, optional
        Starting value. Defaults to the DerSimonian-Laird estimate.
    tol : :obj:`float`, optional
        Convergence threshold on the absolute change in tau^2 between
        iterations. Default = 1e-8.
    max_iter : :obj:`int`, optional
        Maximum number of scoring steps. Default = 100.

    Returns
    -------
    beta : :obj:`numpy.ndarray` of shape (P,)
    cov : :obj:`numpy.ndarray` of shape (P, P)
    tau2 : :obj:`float`
    n_iter : :obj:`int`

    Raises
    ------
    NonConvergentEstimationError
        If the change in tau^2 is still above ``tol`` after ``max_iter`` steps.

    References
    ----------
    Viechtbauer, W. (2005). Bias and efficiency of meta-analytic variance
    estimators in the random-effects model. Journal of Educational and
    Behavioral Statistics, 30(3), 261-293.
    """
    if tau2_init is None:
        tau2_init = dersimonian_laird(y, v, X)
    tau2 = max(0.0, float(tau2_init))
    # the score is positive below the root and negative above it
    lo, hi = 0.0, np.inf
    tried_zero = tau2 == 0.0
    change = np.inf

    for i in range(1, max_iter + 1):
        score, info = _reml_score(y, v, X, tau2)
        if score > 0:
            lo = tau2
        else:
            hi = tau2
        step = score / info
        new_tau2 = tau2 + step
        if new_tau2 < 0 and lo == 0.0 and not tried_zero:
            new_tau2, tried_zero = 0.0, True
        elif not lo <= new_tau2 <= hi or (np.isfinite(hi) and abs(step) > change / 2):
            new_tau2 = (lo + hi) / 2
        change = abs(new_tau2 - tau2)
        tau2 = new_tau2
        if change < tol:
            break
    else:
        raise NonConvergentEstimationError(
            "REML estimation of tau^2 did not converge within {} iterations "
            "(last change: {:.3g}).".format(max_iter, change)
        )

    beta, cov = weighted_least_squares(y, v, X, tau2, return_cov=True)
    return beta, cov, tau2, i


def reml_loglik(y, v, X, tau2):
    """Restricted log-likelihood at a given tau^2, up to an additive constant."""
    w = 1.0 / (v + tau2)
    beta = weighted_least_squares(y, v, X, tau2)
    R = y - X.dot(beta)
    _, logdet = np.linalg.slogdet((X.T * w).dot(X))
    return -0.5 * (np.log(v + tau2).sum() + logdet + (w * R**2).sum())


def q_gen(y, v, X, tau2):
    """Calculate a generalized form of Cochran's Q-statistic.

    This version of the Q statistic is described in Veroniki et al. (2016).

    Parameters
    ----------
    y : :obj:`numpy.ndarray`
        1d array of study-level estimates
    v : :obj:`numpy.ndarray`
        1d array of study-level variances
    X : :obj:`numpy.ndarray`
        2d design matrix, including the intercept.
    tau2 : :obj:`float`
        Between-study variance. Must be >= 0.

    Returns
    -------
    :obj:`float`
        A float giving the value of Cochran's Q-statistic.
    """
    if np.any(tau2 < 0):
        raise ValueError("Value of tau^2 must be >= 0.")

    beta = weighted_least_squares(y, v, X, tau2)
    w = 1.0 / (v + tau2)
    return float((w * (y - X.dot(beta)) ** 2).sum())


def q_profile(y, v, X, alpha=0.05):
    """Get the CI for tau^2 via the Q-Profile method.

    Parameters
    ----------
    y : :obj:`numpy.ndarray` of shape (K,)
        1d array of study-level estimates
    v : :obj:`numpy.ndarray` of shape (K,)
        1d array of study-level variances
    X : :obj:`numpy.ndarray` of shape (K, P)
        Design matrix, including the intercept.
    alpha : :obj:`float`, optional
        alpha value defining the coverage of the CIs,
        where width(CI) = 1 - alpha. Default = 0.05.

    Returns
    -------
    :obj:`dict`
        A dictionary with keys 'ci_l' and 'ci_u', corresponding to the lower
        and upper bounds of the tau^2 confidence interval, respectively.

    Notes
    -----
    Following Viechtbauer (2007), this method returns the interval that gives
    an equal probability mass at both tails, and *not* the smallest possible
    range of tau^2 values that provides the desired coverage.
    """
    k, p = X.shape
    df = k - p
    l_crit = ss.chi2.ppf(1 - alpha / 2, df)
    u_crit = ss.chi2.ppf(alpha / 2, df)
    bds = Bounds([0], [np.inf], keep_feasible=True)

    def _loss(crit):
        return lambda x: (q_gen(y, v, X, x[0]) - crit) ** 2

    # Q(0) below the critical value means the bound sits at the boundary;
    # minimize() drifts off zero in that case, so short-circuit it.
    q0 = q_gen(y, v, X, 0.0)
    ub_start = 2 * dersimonian_laird(y, v, X) + 1e-4

    lb = 0.0 if q0 <= l_crit else minimize(_loss(l_crit), [ub_start / 2], bounds=bds).x[0]
    ub = 0.0 if q0 <= u_crit else minimize(_loss(u_crit), [ub_start], bounds=bds).x[0]
    return {"ci_l": float(lb), "ci_u": float(ub)}


def z_crit(alpha=0.05):
    """Two-sided critical value of the standard normal distribution."""
    return ss.norm.ppf(1 - alpha / 2)


def study_ci(y, v, alpha=0.05):
    """Convert study-level sampling variances to Wald confidence intervals."""
    term = z_crit(alpha) * np.sqrt(v)
    return y - term, y + term
