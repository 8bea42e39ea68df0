import math

import numpy as np
import pytest

from flavkit import (
    ConfigurationError,
    UnsupportedOperationError,
    gaussian,
    mixture,
)


def test_identical_components_collapse(scalar):
    a = gaussian(scalar.cache, scalar.observable, 1.0, 2.0, 4.0)
    b = gaussian(scalar.cache, scalar.observable, 1.0, 2.0, 4.0)
    block = mixture([a, b], [1.0, 1.0])

    for x in (-5.0, 1.3, 2.0, 3.7, 30.0):
        scalar.at(x)
        assert block.evaluate() == pytest.approx(a.evaluate())


def test_weights_are_normalised(scalar):
    a = gaussian(scalar.cache, scalar.observable, -1.0, 0.0, 1.0)
    b = gaussian(scalar.cache, scalar.observable, 4.0, 5.0, 6.0, number_of_observations=2)
    block = mixture([a, b], [3.0, 1.0])
    np.testing.assert_allclose(block.weights, [0.75, 0.25])
    assert block.number_of_observations == 3

    scalar.at(2.0)
    expected = math.log(0.75 * math.exp(a.evaluate()) + 0.25 * math.exp(b.evaluate()))
    assert block.evaluate() == pytest.approx(expected)


def test_evaluate_is_stable_far_in_the_tails(scalar):
    a = gaussian(scalar.cache, scalar.observable, -1.0, 0.0, 1.0)
    b = gaussian(scalar.cache, scalar.observable, 9.0, 10.0, 11.0)
    block = mixture([a, b], [0.5, 0.5])

    # both component densities underflow to zero in linear space
    scalar.at(-60.0)
    assert np.isfinite(block.evaluate())
    assert block.evaluate() == pytest.approx(a.evaluate() + math.log(0.5))


@pytest.mark.parametrize("weights", [[1.0], [1.0, -0.5], [0.0, 0.0]])
def test_invalid_weights(scalar, weights):
    a = gaussian(scalar.cache, scalar.observable, -1.0, 0.0, 1.0)
    b = gaussian(scalar.cache, scalar.observable, 4.0, 5.0, 6.0)
    with pytest.raises(ConfigurationError):
        mixture([a, b], weights)


def test_sample_and_significance_are_unsupported(scalar):
    a = gaussian(scalar.cache, scalar.observable, -1.0, 0.0, 1.0)
    block = mixture([a], [1.0])
    scalar.at(0.5)
    with pytest.raises(UnsupportedOperationError):
        block.sample(np.random.default_rng(0))
    with pytest.raises(UnsupportedOperationError):
        block.significance()


def test_clone_clones_components(scalar):
    a = gaussian(scalar.cache, scalar.observable, -1.0, 0.0, 1.0)
    b = gaussian(scalar.cache, scalar.observable, 4.0, 5.0, 6.0)
    block = mixture([a, b], [1.0, 3.0])
    copy = block.clone(scalar.cache)
    assert copy.components[0] is not a
    np.testing.assert_allclose(copy.weights, block.weights)

    scalar.at(3.0)
    assert copy.evaluate() == pytest.approx(block.evaluate())
    assert str(copy).startswith("Mixture: \nGaussian: 0 +- 1\n")
