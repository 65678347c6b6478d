"""Publication bias diagnostics: trim-and-fill and Egger's regression test."""

from warnings import warn

import numpy as np
import scipy.stats as ss

from .core import EffectSizeRecord, records_to_arrays
from .estimators import RandomEffectsEstimator
from .exceptions import InsufficientDataError, NonConvergentTrimFillError
from .results import EggerTestResult, TrimFillResult
from .stats import reml, weighted_least_squares
from .utils import requires_studies


class TrimAndFill:
    """Duval & Tweedie's nonparametric trim-and-fill method.

    Estimates how many studies are missing from one side of the funnel plot,
    imputes their mirror images around the trimmed pooled estimate and refits
    the random-effects model on the augmented data.

    Parameters
    ----------
    estimator : {"R0", "L0"}, optional
        Estimator of the number of missing studies. Default = "R0".
    side : {None, "left", "right"}, optional
        Side of the funnel on which studies are assumed missing. When None
        (default), the side is chosen from the sign of the slope of a
        meta-regression of the effects on their standard errors: a positive
        slope (small studies reporting larger effects) means studies are
        missing on the left.
    max_iter : :obj:`int`, optional
        Maximum number of trimming iterations. Default = 10.
    alpha : :obj:`float`, optional
        Alpha level of the adjusted CI. Default = 0.05.

    Notes
    -----
    The records passed to :meth:`correct` are never modified; the imputed
    studies only exist inside the returned result.

    References
    ----------
    Duval, S., & Tweedie, R. (2000). Trim and fill: A simple funnel-plot-based
    method of testing and adjusting for publication bias in meta-analysis.
    Biometrics, 56(2), 455-463.
    """

    def __init__(self, estimator="R0", side=None, max_iter=10, alpha=0.05):
        estimator = estimator.upper()
        if estimator not in {"R0", "L0"}:
            raise ValueError("Invalid estimator; must be one of 'R0' or 'L0'.")
        if side not in {None, "left", "right"}:
            raise ValueError("Invalid side; must be None, 'left' or 'right'.")
        self.estimator = estimator
        self.side = side
        self.max_iter = max_iter
        self.alpha = alpha

    @requires_studies(3)
    def correct(self, records):
        """Run trim-and-fill on ``records``.

        Returns
        -------
        :obj:`~anxmeta.results.TrimFillResult`

        Raises
        ------
        InsufficientDataError
            If fewer than three studies are passed.
        NonConvergentTrimFillError
            If the number of missing studies keeps changing after
            ``max_iter`` iterations.
        """
        y, v = records_to_arrays(records)
        side = self.side or self._estimate_side(y, v)

        # work on the side where studies are missing being the left one
        sign = -1.0 if side == "right" else 1.0
        order = np.argsort(sign * y, kind="stable")
        ys, vs = sign * y[order], v[order]
        k = len(ys)

        k0, prev, n_iter = 0, None, 0
        while k0 != prev:
            if n_iter == self.max_iter:
                raise NonConvergentTrimFillError(
                    "Trim-and-fill did not converge within {} iterations.".format(self.max_iter)
                )
            n_iter += 1
            prev = k0
            keep = k - k0
            beta = reml(ys[:keep], vs[:keep], np.ones((keep, 1)))[0][0]
            centered = ys - beta
            signed = np.sign(centered) * ss.rankdata(np.abs(centered), method="ordinal")
            k0, k0_se = self._missing_count(signed, k)

        filled_y = sign * (2 * beta - ys[k - k0:])
        filled_v = vs[k - k0:]
        if k0:
            warn("Trim-and-fill imputed {} studies on the {} side.".format(k0, side))

        group = records[0].outcome_group
        taken = set(r.study_id for r in records)
        filled = []
        for i, (yi, vi) in enumerate(zip(filled_y, filled_v)):
            study_id = "filled {}".format(i + 1)
            while study_id in taken:
                study_id += "'"
            taken.add(study_id)
            filled.append(EffectSizeRecord(study_id, yi, np.sqrt(vi), group))
        model = RandomEffectsEstimator(alpha=self.alpha).fit(list(records) + filled)

        return TrimFillResult(
            imputed_count=k0,
            adjusted_pooled_effect=model.pooled_effect,
            adjusted_confidence_interval=model.confidence_interval,
            side=side,
            estimator=self.estimator,
            k0_se=k0_se,
            imputed_effects=tuple(float(x) for x in filled_y),
            imputed_variances=tuple(float(x) for x in filled_v),
            model=model,
        )

    def _missing_count(self, signed, k):
        if self.estimator == "R0":
            neg = -signed[signed < 0]
            # length of the rightmost run of positive ranks, minus one
            k0 = k - (neg.max() if neg.size else 0) - 1
            se = np.sqrt(2 * max(0, k0) + 2)
        else:
            s_r = signed[signed > 0].sum()
            k0 = (4 * s_r - k * (k + 1)) / (2 * k - 1)
            var_sr = (
                k * (k + 1) * (2 * k + 1)
                + 10 * k0**3
                + 27 * k0**2
                + 17 * k0
                - 18 * k * k0**2
                - 18 * k * k0
                + 6 * k**2 * k0
            ) / 24
            se = 4 * np.sqrt(max(0.0, var_sr)) / (2 * k - 1)
        # at least two studies must survive trimming
        k0 = int(min(max(0, round(k0)), k - 2))
        return k0, float(se)

    @staticmethod
    def _estimate_side(y, v):
        se = np.sqrt(v)
        if np.ptp(se) == 0:
            return "left"
        X = np.column_stack([np.ones_like(se), se])
        slope = reml(y, v, X)[0][1]
        return "right" if slope < 0 else "left"


class EggersRegressionTest:
    """Egger's regression test for funnel plot asymmetry.

    Regresses the standardized effects ``y_i / se_i`` on the precisions
    ``1 / se_i`` by ordinary least squares. An intercept away from zero
    indicates small-study effects; it is tested with a two-tailed t-test on
    ``k - 2`` degrees of freedom.

    References
    ----------
    Egger, M., Davey Smith, G., Schneider, M., & Minder, C. (1997). Bias in
    meta-analysis detected by a simple, graphical test. BMJ, 315(7109),
    629-634.
    """

    def test(self, model):
        """Run the test on the studies of a fitted model.

        Returns
        -------
        :obj:`~anxmeta.results.EggerTestResult`

        Raises
        ------
        InsufficientDataError
            If the model holds fewer than three studies.
        """
        if model.k < 3:
            raise InsufficientDataError(
                "Egger's test requires at least 3 studies; got {}.".format(model.k)
            )
        y, v = records_to_arrays([s.record for s in model.records])
        se = np.sqrt(v)
        z = y / se
        X = np.column_stack([np.ones_like(se), 1.0 / se])

        # unit weights give the OLS solution
        beta, cov = weighted_least_squares(z, np.ones_like(z), X, return_cov=True)
        df = model.k - 2
        resid = z - X.dot(beta)
        sigma2 = resid.dot(resid) / df
        intercept_se = float(np.sqrt(sigma2 * cov[0, 0]))
        t = float(beta[0] / intercept_se)

        return EggerTestResult(
            intercept=float(beta[0]),
            intercept_se=intercept_se,
            p_value=float(2 * ss.t.sf(abs(t), df)),
            slope=float(beta[1]),
            t=t,
            df=df,
        )
