"""Tests for anxmeta.pipeline."""
import pytest

from anxmeta import EffectSizeRecord, OutcomeGroup, analyze_all_groups, analyze_outcome_group
from anxmeta.exceptions import InsufficientDataError, MissingCovariateError
from anxmeta.results import FittedModel


@pytest.fixture(scope="module")
def all_records(outlier_records, asymmetric_records):
    records = []
    for r in outlier_records:
        records.append(
            EffectSizeRecord(r.study_id, r.effect, r.standard_error, "clinician", {"sessions": 8})
        )
    for i, r in enumerate(asymmetric_records):
        covs = {"sessions": 6 + i, "format": "group" if i % 2 else "individual"}
        records.append(EffectSizeRecord(r.study_id, r.effect, r.standard_error, "parent", covs))
    # a single self-report study
    records.append(EffectSizeRecord("Lone 2015", 0.4, 0.2, "self"))
    return records


def test_analyze_outcome_group(all_records):
    """Test the full analysis of one group."""
    with pytest.warns(UserWarning):
        analysis = analyze_outcome_group(all_records, "parent", moderators=["sessions", "format"])

    assert analysis.group is OutcomeGroup.PARENT
    assert isinstance(analysis.model, FittedModel)
    assert analysis.model.k == 7
    assert analysis.outlier_removal is not None
    assert analysis.trimfill.imputed_count > 0
    assert analysis.egger.df == 5
    assert set(analysis.moderators) == {"sessions", "format"}
    assert analysis.moderator_table().shape[0] == 2
    assert analysis.errors == {}


def test_secondary_failures_are_recorded(all_records):
    """A failing moderator test doesn't stop the rest of the analysis."""
    analysis = analyze_outcome_group(all_records, "clinician", moderators=["format", "sessions"])

    assert analysis.outlier_removal.removed == ("Extreme et al. 2012",)
    assert analysis.egger is not None
    assert isinstance(analysis.errors["moderator:format"], MissingCovariateError)
    assert "moderator:sessions" in analysis.errors
    assert analysis.moderators == {}


def test_analyze_all_groups(all_records):
    """One group's failure doesn't block the others."""
    results = analyze_all_groups(all_records)

    assert set(results) == set(OutcomeGroup)
    assert isinstance(results[OutcomeGroup.SELF], InsufficientDataError)
    assert results[OutcomeGroup.CLINICIAN].model.k == 6
    assert results[OutcomeGroup.PARENT].model.k == 7


def test_analyze_selected_groups(all_records):
    """Test restricting the analysis to some groups."""
    results = analyze_all_groups(all_records, groups=["parent"], trimfill_estimator="L0")
    assert list(results) == [OutcomeGroup.PARENT]
    assert results[OutcomeGroup.PARENT].trimfill.estimator == "L0"
