"""
flavkit: likelihoods for flavour-physics constraints:
- Parameters, observables and a shared prediction cache
- Likelihood blocks (Gaussian, LogGamma, Amoroso, multivariate Gaussian, mixture)
- Constraints and the total log-likelihood
- Bootstrap p-values and significances
"""

import logging

from .errors import ConfigurationError, UnknownParameterError, UnsupportedOperationError
from .parameters import Parameter, Parameters
from .observables import FunctionObservable, Observable, Params
from .cache import ObservableCache
from .statistic import ChiSquare, Empty, TestStatistic
from .blocks import (
    AmorosoBlock,
    GaussianBlock,
    LogGammaBlock,
    LogLikelihoodBlock,
    MixtureBlock,
    MultivariateGaussianBlock,
    amoroso,
    amoroso_limit,
    amoroso_mode,
    amoroso_quantiles,
    gaussian,
    log_gamma,
    mixture,
    multivariate_gaussian,
)
from .constraint import Constraint
from .likelihood import LogLikelihood
from .solver import SolverConfig

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ConfigurationError",
    "UnknownParameterError",
    "UnsupportedOperationError",
    "Parameter",
    "Parameters",
    "Observable",
    "FunctionObservable",
    "Params",
    "ObservableCache",
    "TestStatistic",
    "ChiSquare",
    "Empty",
    "LogLikelihoodBlock",
    "GaussianBlock",
    "LogGammaBlock",
    "AmorosoBlock",
    "MultivariateGaussianBlock",
    "MixtureBlock",
    "gaussian",
    "log_gamma",
    "amoroso",
    "amoroso_limit",
    "amoroso_mode",
    "amoroso_quantiles",
    "multivariate_gaussian",
    "mixture",
    "Constraint",
    "LogLikelihood",
    "SolverConfig",
]

__version__ = "2026.10.0"
