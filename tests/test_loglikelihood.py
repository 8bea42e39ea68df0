import math

import numpy as np
import pytest
from scipy.stats import chi2

from flavkit import (
    Constraint,
    FunctionObservable,
    LogLikelihood,
    ObservableCache,
    Parameters,
    UnsupportedOperationError,
    gaussian,
    log_gamma,
    mixture,
    multivariate_gaussian,
)


def _parameters():
    return Parameters({"C": (-5.0, 0.0, 5.0), "D": (-5.0, 1.0, 5.0)})


def _build(params):
    """Likelihood with three constraints built on a separate builder cache."""
    builder = ObservableCache(params)
    x = FunctionObservable("x", lambda p: 100.0 + 10.0 * p["C"], params)
    y = FunctionObservable("y", lambda p: p["D"] ** 2, params)

    llh = LogLikelihood(params)
    llh.add_gaussian(x, 90.0, 100.0, 110.0)
    llh.add(Constraint("y@LogGamma", [y], [log_gamma(builder, y, 0.6, 1.0, 1.6)]))
    llh.add(
        Constraint(
            "xy@Correlated",
            [x, y],
            [multivariate_gaussian(builder, [x, y], [101.0, 1.2], [[25.0, 0.3], [0.3, 0.04]])],
        )
    )
    return llh


def test_scenario_single_gaussian():
    params = _parameters()
    obs = FunctionObservable("x", lambda p: 2.0 + p["C"], params)
    llh = LogLikelihood(params)
    llh.add_gaussian(obs, 1.0, 2.0, 4.0, number_of_observations=0)

    norm = math.log(math.sqrt(2.0 / math.pi) / 3.0)
    assert llh() == pytest.approx(norm)
    params.set("C", 1.0)
    assert llh() == pytest.approx(norm - 0.5 * 0.25)
    assert llh.number_of_observations == 0
    assert [c.name for c in llh] == ["x"]


def test_total_is_sum_of_blocks():
    params = _parameters()
    llh = _build(params)
    params.set("C", 0.3)
    total = llh()

    blocks = [b for c in llh for b in c.blocks]
    assert len(blocks) == 3
    assert total == pytest.approx(sum(b.evaluate() for b in blocks))
    assert llh.number_of_observations == 1 + 1 + 2
    assert len(llh) == 3


def test_blocks_read_from_own_cache():
    params = _parameters()
    llh = _build(params)
    cache = llh.observable_cache
    for c in llh:
        for b in c.blocks:
            assert b.cache is cache
    # x is tracked directly, y is cloned once although two constraints use it
    assert len(cache) == 2


def test_clone_is_independent():
    """
    A clone evaluates to the same value for identical parameters, and changing
    the clone's parameters leaves the original untouched.
    """
    params = _parameters()
    llh = _build(params)
    params.set("D", 1.1)
    before = llh()

    copy = llh.clone()
    assert copy() == pytest.approx(before)
    assert copy.parameters is not llh.parameters
    assert len(copy.observable_cache) == len(llh.observable_cache)

    copy.parameters.set("C", 2.0)
    copy.parameters.set("D", -0.3)
    assert copy() != pytest.approx(before)
    assert llh() == pytest.approx(before)
    assert llh.parameters["C"] == 0.0


def test_bootstrap_is_deterministic():
    params = _parameters()
    llh = _build(params)
    params.set("C", 0.4)

    first = llh.bootstrap_p_value(300)
    second = llh.bootstrap_p_value(300)
    assert first == second
    p, uncertainty = first
    assert 0.0 <= p <= 1.0
    assert 0.0 < uncertainty < 0.05


def test_bootstrap_at_the_mode_never_falls_below():
    params = _parameters()
    obs = FunctionObservable("x", lambda p: 100.0 + 10.0 * p["C"], params)
    llh = LogLikelihood(params)
    llh.add_gaussian(obs, 90.0, 100.0, 110.0)

    p, uncertainty = llh.bootstrap_p_value(200)
    assert p == 1.0
    assert uncertainty == pytest.approx(math.sqrt((201 / 202) * (1 / 202) / 203))


@pytest.mark.parametrize("offsets", [(1.0,), (1.5, -0.5)])
def test_bootstrap_matches_chi_square(offsets):
    """
    For symmetric Gaussians the simulated p-value is the chi^2 tail probability
    of the observed sum of squared pulls.
    """
    params = Parameters({f"C{i}": (-5.0, 0.0, 5.0) for i in range(len(offsets))})
    llh = LogLikelihood(params)
    for i, k in enumerate(offsets):
        name = f"C{i}"
        obs = FunctionObservable(f"x{i}", lambda p, name=name: p[name], params)
        llh.add_gaussian(obs, -1.0, 0.0, 1.0)
        params.set(name, k)

    expected = float(chi2.sf(sum(k**2 for k in offsets), len(offsets)))
    p, _ = llh.bootstrap_p_value(5000)
    assert p == pytest.approx(expected, abs=0.03)


def _with_prior(number_of_observations):
    params = _parameters()
    params.set("C", 1.0)
    obs = FunctionObservable("x", lambda p: p["C"], params)
    prior = FunctionObservable("prior", lambda p: p["D"], params)
    llh = LogLikelihood(params)
    llh.add_gaussian(obs, -1.0, 0.0, 1.0)
    llh.add_gaussian(prior, 0.0, 1.0, 2.0, number_of_observations=number_of_observations)
    return llh


def test_prior_only_blocks_are_excluded_from_observed_value():
    # pseudo sums carry the (negative) log-normalisation of the prior, the observed value does not
    p, _ = _with_prior(0).bootstrap_p_value(500)
    assert p == 1.0

    # counted as an observation: p = P(chi2_2 > 1) = exp(-1/2)
    p, _ = _with_prior(1).bootstrap_p_value(2000)
    assert p == pytest.approx(math.exp(-0.5), abs=0.05)


def test_significances():
    params = _parameters()
    llh = _build(params)
    params.set("C", -0.5)
    names, values = zip(*llh.significances())
    assert names == ("x", "y@LogGamma", "xy@Correlated")
    assert values[0] == [pytest.approx(0.5)]
    assert values[2][0] >= 0


def test_mixture_constraint_cannot_be_sampled():
    params = _parameters()
    obs = FunctionObservable("x", lambda p: p["C"], params)
    builder = ObservableCache(params)
    block = mixture(
        [gaussian(builder, obs, -1.0, 0.0, 1.0), gaussian(builder, obs, 1.0, 2.0, 3.0)],
        [1.0, 1.0],
    )
    llh = LogLikelihood(params)
    llh.add(Constraint("x@Mixture", [obs], [block]))

    assert np.isfinite(llh())
    with pytest.raises(UnsupportedOperationError):
        llh.bootstrap_p_value(10)
