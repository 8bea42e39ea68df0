from __future__ import annotations

import logging
import math
from typing import Iterator, Sequence

import numpy as np

from .blocks import LogLikelihoodBlock, gaussian
from .cache import ObservableCache
from .constraint import Constraint
from .observables import Observable
from .parameters import Parameters

logger = logging.getLogger(__name__)


def _bootstrap_rng(datasets: int) -> np.random.Generator:
    """PCG64 generator seeded with the number of data sets."""
    return np.random.default_rng(np.random.PCG64(datasets))


class LogLikelihood:
    """
    Total log-likelihood of a set of constraints:

        log L(params) = sum over constraints, sum over blocks of block.evaluate()

    All blocks read their predictions from one ObservableCache bound to
    `parameters`. Use `clone` to obtain an independent copy, e.g. one per
    sampling chain; copies share no mutable state.
    """

    def __init__(self, parameters: Parameters) -> None:
        self._parameters = parameters
        self._cache = ObservableCache(parameters)
        self._constraints: list[Constraint] = []

    @property
    def parameters(self) -> Parameters:
        return self._parameters

    @property
    def observable_cache(self) -> ObservableCache:
        return self._cache

    def add(self, constraint: Constraint) -> None:
        """Add a constraint, re-binding each of its blocks to this likelihood's cache."""
        blocks = [b.clone(self._cache) for b in constraint.blocks]
        self._constraints.append(Constraint(constraint.name, list(constraint.observables), blocks))

    def add_gaussian(
        self,
        observable: Observable,
        minimum: float,
        central: float,
        maximum: float,
        number_of_observations: int = 1,
    ) -> None:
        """Add a single (asymmetric) Gaussian measurement named after `observable`."""
        block = gaussian(self._cache, observable, minimum, central, maximum, number_of_observations)
        self._constraints.append(Constraint(observable.name, [observable], [block]))

    def _blocks(self) -> Iterator[LogLikelihoodBlock]:
        for c in self._constraints:
            yield from c.blocks

    def __call__(self) -> float:
        # refresh all predictions once, then read them from the cache
        self._cache.update()
        return sum((b.evaluate() for b in self._blocks()), 0.0)

    def bootstrap_p_value(self, datasets: int) -> tuple[float, float]:
        """
        Simulated p-value of the current parameter point, with its uncertainty.

        1) For fixed parameters, create pseudo data sets under the model.
        2) Use the likelihood as test statistic and compute it for each set.
        3) p = #(likelihood < observed likelihood) / #datasets.

        Only blocks representing observations enter the observed value. The
        generator is seeded with `datasets`, so repeated calls with the same
        number of data sets give identical results.
        """
        if datasets <= 0:
            raise ValueError("datasets must be positive")

        self._cache.update()
        t_obs = sum(
            (b.evaluate() for b in self._blocks() if b.number_of_observations),
            0.0,
        )
        logger.info(
            "The value of the test statistic (total likelihood) for the current parameters is = %g",
            t_obs,
        )

        rng = _bootstrap_rng(datasets)
        logger.info("Begin sampling %d simulated values of the likelihood", datasets)

        n_low = 0
        for _ in range(datasets):
            t = sum((b.sample(rng) for b in self._blocks()), 0.0)
            if t < t_obs:
                n_low += 1

        # mode of the binomial posterior
        p = n_low / datasets

        # standard deviation of the Beta posterior under a uniform prior
        p_expected = (n_low + 1) / (datasets + 2)
        uncertainty = math.sqrt(p_expected * (1.0 - p_expected) / (datasets + 3))

        logger.info("The simulated p-value is %g with uncertainty %g", p, uncertainty)
        return p, uncertainty

    def significances(self) -> list[tuple[str, list[float]]]:
        """(name, block significances) of every constraint at the current parameters."""
        self._cache.update()
        return [(c.name, [b.significance() for b in c.blocks]) for c in self._constraints]

    def clone(self) -> "LogLikelihood":
        """Independent copy with cloned parameters, cache and blocks."""
        parameters = self._parameters.clone()
        result = LogLikelihood(parameters)
        result._cache = self._cache.clone(parameters)
        for c in self._constraints:
            result.add(c)
        return result

    @property
    def number_of_observations(self) -> int:
        return sum(c.number_of_observations for c in self._constraints)

    @property
    def constraints(self) -> Sequence[Constraint]:
        return tuple(self._constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    def __len__(self) -> int:
        return len(self._constraints)
