"""Tests for anxmeta.estimators."""
import numpy as np
import pytest

from anxmeta import EffectSizeRecord, FixedEffectEstimator, RandomEffectsEstimator, meta_analysis
from anxmeta.exceptions import (
    InsufficientDataError,
    InvalidRecordError,
    NonConvergentEstimationError,
)


def test_random_effects_estimator(small_records):
    """Test RandomEffectsEstimator on a small, homogeneous set of studies."""
    model = RandomEffectsEstimator().fit(small_records)

    assert 0.3 < model.pooled_effect < 0.5
    assert model.tau_squared >= 0
    ci_l, ci_u = model.confidence_interval
    assert ci_l < model.pooled_effect < ci_u
    assert np.isclose((ci_l + ci_u) / 2, model.pooled_effect, atol=1e-10)
    assert np.isclose(ci_u - model.pooled_effect, 1.959964 * model.pooled_se, atol=1e-6)
    assert model.method == "REML"
    assert model.k == 4

    # SE is the square root of the inverse summed weights
    w = np.array([s.weight for s in model.records])
    assert np.isclose(model.pooled_se, np.sqrt(1 / w.sum()))


def test_zero_tau2_matches_fixed_effect():
    """Without heterogeneity, REML reduces to the inverse-variance weighted mean."""
    effects = [0.30, 0.31, 0.29, 0.30, 0.30]
    ses = [0.2, 0.25, 0.3, 0.2, 0.35]
    records = [EffectSizeRecord(str(i), y, se, "self") for i, (y, se) in enumerate(zip(effects, ses))]
    model = RandomEffectsEstimator().fit(records)

    w = 1 / np.array(ses) ** 2
    expected = (w * np.array(effects)).sum() / w.sum()
    assert model.tau_squared == 0
    assert np.isclose(model.pooled_effect, expected, atol=1e-6)

    fe = FixedEffectEstimator().fit(records)
    assert np.isclose(model.pooled_effect, fe.pooled_effect, atol=1e-6)
    assert np.isclose(model.pooled_se, fe.pooled_se, atol=1e-6)


def test_fit_with_zero_starting_value():
    """Heterogeneity hidden below the DerSimonian-Laird cutoff is still estimated."""
    effects = [0.5483, 0.8012, 0.4332, 0.4742, 1.0709, 0.5652, 0.5705]
    ses = [0.3811, 0.4332, 0.6581, 0.6053, 0.2139, 0.4851, 0.4762]
    records = [EffectSizeRecord(str(i), y, se, "self") for i, (y, se) in enumerate(zip(effects, ses))]
    model = RandomEffectsEstimator().fit(records)
    assert np.isclose(model.tau_squared, 0.00672, atol=1e-4)
    assert model.n_iter < 100


def test_fit_is_deterministic(heterogeneous_records):
    """Fitting the same records twice gives identical models."""
    est = RandomEffectsEstimator()
    assert est.fit(heterogeneous_records) == est.fit(list(heterogeneous_records))


def test_far_study_increases_tau2(small_records):
    """A study far outside the others' CIs increases the tau^2 estimate."""
    base = RandomEffectsEstimator().fit(small_records)
    far = EffectSizeRecord("far", 3.0, 0.1, "self")
    model = RandomEffectsEstimator().fit(list(small_records) + [far])
    assert model.tau_squared > base.tau_squared


def test_residuals_and_weights(heterogeneous_records):
    """Test the per-study fit information."""
    model = RandomEffectsEstimator().fit(heterogeneous_records)
    assert model.tau_squared > 0
    for study in model.records:
        assert np.isclose(study.residual, study.record.effect - model.pooled_effect)
        assert np.isclose(study.weight, 1 / (study.record.variance + model.tau_squared))
    assert model.study_ids == [r.study_id for r in heterogeneous_records]


def test_insufficient_data(small_records):
    """A single study can't be meta-analyzed."""
    with pytest.raises(InsufficientDataError):
        RandomEffectsEstimator().fit(small_records[:1])
    with pytest.raises(InsufficientDataError):
        RandomEffectsEstimator().fit([])


def test_duplicate_study_ids(small_records):
    """Test that repeated study ids are rejected."""
    with pytest.raises(InvalidRecordError):
        RandomEffectsEstimator().fit([small_records[0], small_records[0], small_records[1]])


def test_non_convergence(heterogeneous_records):
    """Test that the iteration cap raises instead of returning a partial estimate."""
    with pytest.raises(NonConvergentEstimationError):
        RandomEffectsEstimator(max_iter=1).fit(heterogeneous_records)


def test_meta_analysis(heterogeneous_records):
    """Test meta_analysis function."""
    model = meta_analysis(heterogeneous_records, method="fe")
    assert model.method == "FE"
    assert model.tau_squared == 0.0

    model = meta_analysis(heterogeneous_records, alpha=0.1)
    assert model.alpha == 0.1
    assert model.method == "REML"

    with pytest.raises(ValueError):
        meta_analysis(heterogeneous_records, method="DL")
    with pytest.raises(ValueError):
        RandomEffectsEstimator(alpha=1.5)
