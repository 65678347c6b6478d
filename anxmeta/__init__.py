"""AnxMeta: random-effects meta-analysis of home-based anxiety interventions."""

from .bias import EggersRegressionTest, TrimAndFill
from .core import EffectSizeRecord, OutcomeGroup, filter_group, records_from_df, records_to_df
from .estimators import FixedEffectEstimator, RandomEffectsEstimator, meta_analysis
from .moderators import ModeratorAnalyzer, moderator_table
from .outliers import OutlierDetector, remove_outliers
from .pipeline import analyze_all_groups, analyze_outcome_group

__all__ = [
    "EffectSizeRecord",
    "OutcomeGroup",
    "filter_group",
    "records_from_df",
    "records_to_df",
    "RandomEffectsEstimator",
    "FixedEffectEstimator",
    "meta_analysis",
    "OutlierDetector",
    "remove_outliers",
    "TrimAndFill",
    "EggersRegressionTest",
    "ModeratorAnalyzer",
    "moderator_table",
    "analyze_outcome_group",
    "analyze_all_groups",
]

from .info import __version__  # noqa: E402
