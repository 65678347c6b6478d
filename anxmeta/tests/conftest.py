import numpy as np
import pytest

from anxmeta import EffectSizeRecord


def _records(effects, ses, group="self", prefix="study", covariates=None):
    covariates = covariates or [{} for _ in effects]
    return [
        EffectSizeRecord("{} {}".format(prefix, i + 1), y, se, group, cov)
        for i, (y, se, cov) in enumerate(zip(effects, ses, covariates))
    ]


@pytest.fixture(scope="package")
def variables():
    y = np.array([-1, 0.5, 0.5, 0.5, 1, 1, 2, 10])
    v = np.array([1, 1, 2.4, 0.5, 1, 1, 1.2, 1.5])
    X = np.array([1, 1, 2, 2, 4, 4, 2.8, 2.8])
    return (y, v, X)


@pytest.fixture(scope="package")
def vars_with_intercept(variables):
    y, v, X = variables
    return (y, v, np.column_stack([np.ones(8), X]))


@pytest.fixture(scope="package")
def heterogeneous_records(variables):
    y, v, X = variables
    fmt = ["individual", "group", "group", "individual", "online", "online", "group", "online"]
    covs = [{"my_covariate": x, "format": f} for x, f in zip(X, fmt)]
    return _records(y, np.sqrt(v), covariates=covs)


@pytest.fixture(scope="package")
def small_records():
    return _records([0.3, 0.5, 0.4, 0.35], [0.1, 0.15, 0.12, 0.11])


@pytest.fixture(scope="package")
def outlier_records():
    records = _records([0.3, 0.25, 0.35, 0.28, 0.32], [0.1, 0.12, 0.15, 0.11, 0.13])
    records.append(EffectSizeRecord("Extreme et al. 2012", 5.0, 0.05, "self"))
    return records


@pytest.fixture(scope="package")
def symmetric_records():
    # effects mirrored around 0.4, each pair sharing a standard error
    return _records([0.2, 0.3, 0.4, 0.5, 0.6], [0.2, 0.15, 0.1, 0.15, 0.2])


@pytest.fixture(scope="package")
def asymmetric_records():
    # precise studies near 0.2, imprecise ones reporting larger effects
    return _records(
        [0.2, 0.25, 0.15, 0.5, 0.6, 0.8, 0.9], [0.05, 0.06, 0.07, 0.15, 0.2, 0.25, 0.3]
    )
