"""Outlier detection and iterative removal."""

import logging

from .core import records_to_arrays
from .estimators import RandomEffectsEstimator
from .exceptions import NonConvergentOutlierRemovalError
from .results import OutlierRemovalResult
from .stats import study_ci

LGR = logging.getLogger(__name__)


class OutlierDetector:
    """Flag studies whose confidence interval does not overlap the pooled one.

    A study is an outlier when its own interval ``y_i +/- z * sqrt(v_i)``
    lies entirely above or entirely below the model's interval for the
    pooled effect. Any overlap, including a shared endpoint, keeps the study.
    Both intervals use the model's alpha.
    """

    def detect(self, model):
        """Return the ids of the outlying studies in ``model`` as a frozenset."""
        y, v = records_to_arrays([s.record for s in model.records])
        lo, hi = study_ci(y, v, model.alpha)
        pooled_lo, pooled_hi = model.confidence_interval
        flagged = (hi < pooled_lo) | (lo > pooled_hi)
        return frozenset(s.record.study_id for s, f in zip(model.records, flagged) if f)


def remove_outliers(records, estimator=None, detector=None, max_iter=10):
    """Alternate outlier detection and refitting until no study is flagged.

    Parameters
    ----------
    records : sequence of :obj:`~anxmeta.core.EffectSizeRecord`
    estimator : estimator instance, optional
        Used for every (re)fit. Default = :class:`RandomEffectsEstimator`.
    detector : :obj:`OutlierDetector`, optional
    max_iter : :obj:`int`, optional
        Maximum number of removal rounds. Default = 10.

    Returns
    -------
    :obj:`~anxmeta.results.OutlierRemovalResult`

    Raises
    ------
    NonConvergentOutlierRemovalError
        If studies are still flagged after ``max_iter`` rounds.
    InsufficientDataError
        If removal leaves fewer than two studies.
    """
    estimator = estimator or RandomEffectsEstimator()
    detector = detector or OutlierDetector()

    records = list(records)
    initial = model = estimator.fit(records)
    removed = []
    n_rounds = 0
    while True:
        outliers = detector.detect(model)
        if not outliers:
            break
        if n_rounds == max_iter:
            raise NonConvergentOutlierRemovalError(
                "Studies {} still flagged as outliers after {} removal rounds.".format(
                    sorted(outliers), max_iter
                )
            )
        n_rounds += 1
        # keep input order for the ids removed in the same round
        dropped = [r.study_id for r in records if r.study_id in outliers]
        LGR.info("Outlier round %d: removing %s", n_rounds, dropped)
        removed.extend(dropped)
        records = [r for r in records if r.study_id not in outliers]
        model = estimator.fit(records)

    return OutlierRemovalResult(
        initial_model=initial, model=model, removed=tuple(removed), n_iterations=n_rounds
    )
