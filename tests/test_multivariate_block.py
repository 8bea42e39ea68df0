import math

import numpy as np
import pytest
from scipy.stats import chi2, multivariate_normal, norm

from flavkit import (
    ConfigurationError,
    FunctionObservable,
    ObservableCache,
    Parameters,
    gaussian,
    multivariate_gaussian,
)
from flavkit.statistic import ChiSquare


@pytest.fixture
def pair():
    params = Parameters({"a": (-10.0, 0.0, 10.0), "b": (-10.0, 0.0, 10.0)})
    obs = [
        FunctionObservable("A", lambda p: p["a"], params),
        FunctionObservable("B", lambda p: p["b"], params),
    ]
    return params, obs, ObservableCache(params)


def test_diagonal_equals_sum_of_univariate(pair):
    params, obs, cache = pair
    s1, s2 = 0.5, 2.0
    block = multivariate_gaussian(cache, obs, [1.0, -1.0], [[s1**2, 0.0], [0.0, s2**2]])
    g1 = gaussian(cache, obs[0], 1.0 - s1, 1.0, 1.0 + s1)
    g2 = gaussian(cache, obs[1], -1.0 - s2, -1.0, -1.0 + s2)

    params.set("a", 1.7)
    params.set("b", 0.4)
    cache.update()

    assert block.evaluate() == pytest.approx(g1.evaluate() + g2.evaluate())

    chi_sq = ((1.7 - 1.0) / s1) ** 2 + ((0.4 + 1.0) / s2) ** 2
    assert block.chi_square() == pytest.approx(chi_sq)
    assert block.significance() == pytest.approx(norm.ppf((chi2.cdf(chi_sq, 2) + 1.0) / 2.0))


def test_correlated_density_matches_scipy(pair):
    params, obs, cache = pair
    mean = np.array([0.3, -0.2])
    cov = np.array([[1.0, 0.6], [0.6, 2.0]])
    block = multivariate_gaussian(cache, obs, mean, cov)

    params.set("a", 1.1)
    params.set("b", 0.5)
    cache.update()

    expected = multivariate_normal(mean=mean, cov=cov).logpdf([1.1, 0.5])
    assert block.evaluate() == pytest.approx(expected)
    assert block.number_of_observations == 2
    assert isinstance(block.primary_test_statistic(), ChiSquare)


def test_significance_is_never_negative(pair):
    params, obs, cache = pair
    block = multivariate_gaussian(cache, obs, [0.0, 0.0], 1.0)
    cache.update()
    assert block.significance() == pytest.approx(0.0)

    params.set("a", -3.0)
    cache.update()
    assert block.significance() > 0


@pytest.mark.parametrize(
    "mean, cov",
    [
        ([0.0, 0.0, 0.0], np.eye(2)),
        ([0.0, 0.0], np.eye(3)),
        ([0.0, 0.0], np.ones((2, 3))),
        ([0.0, 0.0], [[1.0, 0.5], [0.2, 1.0]]),
        ([0.0, 0.0], [[1.0, 2.0], [2.0, 1.0]]),
        ([0.0, 0.0], [1.0, 1.0, 1.0]),
    ],
)
def test_inconsistent_inputs_are_rejected(pair, mean, cov):
    _, obs, cache = pair
    with pytest.raises(ConfigurationError):
        multivariate_gaussian(cache, obs, mean, cov)
    assert len(cache) == 0


def test_sample_follows_chi_square(pair):
    _, obs, cache = pair
    cov = np.array([[1.0, 0.6], [0.6, 2.0]])
    block = multivariate_gaussian(cache, obs, [0.0, 0.0], cov)
    norm_const = -math.log(2.0 * math.pi) - 0.5 * math.log(np.linalg.det(cov))

    rng = np.random.default_rng(2)
    draws = np.array([block.sample(rng) for _ in range(4000)])
    # -2 (draw - norm) is chi^2 distributed with two degrees of freedom
    assert np.mean(-2.0 * (draws - norm_const)) == pytest.approx(2.0, abs=0.15)


def test_clone_copies_inputs(pair):
    params, obs, cache = pair
    mean = np.array([0.3, -0.2])
    block = multivariate_gaussian(cache, obs, mean, [1.0, 4.0], number_of_observations=1)
    mean[0] = 100.0  # the block owns its copy

    other_params = params.clone()
    other = cache.clone(other_params)
    copy = block.clone(other)
    assert copy.indices == block.indices
    assert copy.mean[0] == 0.3
    assert copy.mean is not block.mean

    other_params.set("a", 1.0)
    cache.update()
    other.update()
    assert copy.evaluate() < block.evaluate()
