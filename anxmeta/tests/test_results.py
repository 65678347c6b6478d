"""Tests for anxmeta.results."""
import numpy as np
import pytest

from anxmeta import RandomEffectsEstimator


@pytest.fixture(scope="module")
def model(heterogeneous_records):
    return RandomEffectsEstimator().fit(heterogeneous_records)


def test_fitted_model_to_df(model):
    """Test the forest plot table."""
    df = model.to_df()
    assert df.shape == (8, 8)
    assert list(df.columns) == [
        "study", "estimate", "se", "ci_l", "ci_u", "weight", "weight_pct", "residual"
    ]
    assert np.isclose(df["weight_pct"].sum(), 100)
    assert np.allclose(df["residual"], df["estimate"] - model.pooled_effect)
    assert (df["ci_l"] < df["estimate"]).all()


def test_heterogeneity_stats(model, small_records):
    """Test FittedModel.get_heterogeneity_stats."""
    stats = model.get_heterogeneity_stats()
    assert set(stats.keys()) == {"Q", "df", "p(Q)", "I^2", "H"}
    assert stats["df"] == 7
    assert stats["Q"] > stats["df"]
    assert 0 < stats["I^2"] < 100
    assert stats["p(Q)"] < 0.05

    homogeneous = RandomEffectsEstimator().fit(small_records).get_heterogeneity_stats()
    assert homogeneous["I^2"] == 0.0


def test_re_stats(model):
    """Test FittedModel.get_re_stats."""
    re_stats = model.get_re_stats()
    assert re_stats["tau^2"] == model.tau_squared
    assert 0 <= re_stats["ci_l"] < re_stats["ci_u"]


def test_prediction_interval(model, small_records):
    """The prediction interval includes tau^2 and is never narrower than the CI."""
    lo, hi = model.prediction_interval()
    ci_l, ci_u = model.confidence_interval
    assert lo < ci_l and hi > ci_u

    homogeneous = RandomEffectsEstimator().fit(small_records)
    if homogeneous.tau_squared == 0:
        assert np.allclose(homogeneous.prediction_interval(), homogeneous.confidence_interval)


def test_z_and_p(model):
    """Test the test of the pooled effect."""
    assert np.isclose(model.z, model.pooled_effect / model.pooled_se)
    assert 0 < model.p <= 1
