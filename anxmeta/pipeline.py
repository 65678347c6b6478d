"""Per-outcome-group analysis pipeline.

The same sequence of analyses is run for each rater perspective:

1. random-effects fit of all studies of the group;
2. iterated outlier removal and refit;
3. trim-and-fill and Egger's test on the full set of studies;
4. one mixed-effects meta-regression per moderator.

Groups share no state, so a failure in one never affects the others.
"""

import logging
from dataclasses import dataclass, field

from .bias import EggersRegressionTest, TrimAndFill
from .core import OutcomeGroup, filter_group
from .estimators import RandomEffectsEstimator
from .exceptions import AnxMetaError
from .moderators import ModeratorAnalyzer, moderator_table
from .outliers import remove_outliers
from .utils import _listify

LGR = logging.getLogger(__name__)


@dataclass
class GroupAnalysis:
    """Everything computed for one outcome group.

    Steps after the main fit are optional: when one fails, its field is left
    as None and the error is stored in ``errors`` under the step name
    ("outliers", "trimfill", "egger" or "moderator:<name>").
    """

    group: OutcomeGroup
    model: object
    outlier_removal: object = None
    trimfill: object = None
    egger: object = None
    moderators: dict = field(default_factory=dict)
    errors: dict = field(default_factory=dict)

    def moderator_table(self):
        """Report table of the moderator tests that succeeded."""
        return moderator_table(list(self.moderators.values()))


def _run_step(analysis, name, func, *args):
    try:
        return func(*args)
    except AnxMetaError as exc:
        LGR.warning("%s: step '%s' failed: %s", analysis.group.value, name, exc)
        analysis.errors[name] = exc
        return None


def analyze_outcome_group(
    records,
    group,
    moderators=None,
    alpha=0.05,
    max_outlier_iter=10,
    trimfill_estimator="R0",
    moderator_test="chi2",
):
    """Run the full analysis for one outcome group.

    Parameters
    ----------
    records : sequence of :obj:`~anxmeta.core.EffectSizeRecord`
        Records of any group; only those matching ``group`` are used.
    group : :obj:`~anxmeta.core.OutcomeGroup` or :obj:`str`
    moderators : :obj:`list` of :obj:`str`, optional
        Covariates to test one at a time.
    alpha : :obj:`float`, optional
        Alpha level for every interval and the outlier rule. Default = 0.05.
    max_outlier_iter : :obj:`int`, optional
        Cap on outlier removal rounds. Default = 10.
    trimfill_estimator : {"R0", "L0"}, optional
        Default = "R0".
    moderator_test : {"chi2", "F"}, optional
        Default = "chi2".

    Returns
    -------
    :obj:`GroupAnalysis`

    Raises
    ------
    AnxMetaError
        If the main random-effects fit fails (e.g., fewer than 2 studies).
    """
    group = OutcomeGroup.parse(group)
    subset = filter_group(records, group)
    LGR.info("%s: fitting %d studies", group.value, len(subset))

    estimator = RandomEffectsEstimator(alpha=alpha)
    analysis = GroupAnalysis(group=group, model=estimator.fit(subset))

    analysis.outlier_removal = _run_step(
        analysis, "outliers", remove_outliers, subset, estimator, None, max_outlier_iter
    )
    analysis.trimfill = _run_step(
        analysis,
        "trimfill",
        TrimAndFill(estimator=trimfill_estimator, alpha=alpha).correct,
        subset,
    )
    analysis.egger = _run_step(analysis, "egger", EggersRegressionTest().test, analysis.model)

    analyzer = ModeratorAnalyzer(test=moderator_test, alpha=alpha)
    for name in _listify(moderators) or []:
        result = _run_step(analysis, "moderator:" + name, analyzer.test_moderator, subset, name)
        if result is not None:
            analysis.moderators[name] = result

    return analysis


def analyze_all_groups(records, groups=None, **kwargs):
    """Run :func:`analyze_outcome_group` independently for each group.

    Returns
    -------
    :obj:`dict`
        Maps each :obj:`~anxmeta.core.OutcomeGroup` to its
        :obj:`GroupAnalysis`, or to the :obj:`~anxmeta.exceptions.AnxMetaError`
        that stopped that group's main fit.
    """
    groups = [OutcomeGroup.parse(g) for g in (_listify(groups) or list(OutcomeGroup))]
    out = {}
    for group in groups:
        try:
            out[group] = analyze_outcome_group(records, group, **kwargs)
        except AnxMetaError as exc:
            LGR.warning("%s: analysis failed: %s", group.value, exc)
            out[group] = exc
    return out
