"""
Log-likelihood blocks: one probability density per experimental measurement.

Every block reads its observable values from a shared ObservableCache and
offers the same capabilities:

- evaluate()        log-density of the cached prediction(s)
- sample(rng)       log-density of a pseudo-measurement, for bootstrap calibration
- significance()    distance prediction <-> measurement in Gaussian sigmas
- clone(cache)      the same block reading from another cache

Blocks are built through the factory functions at the bottom of this module,
which validate their inputs and raise ConfigurationError on violations.
"""

from __future__ import annotations

import logging
import math
import sys
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union, cast

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import cho_solve
from scipy.special import gammainc, gammaincc, gammaln, logsumexp, xlogy
from scipy.stats import chi2, norm

from .cache import ObservableCache
from .errors import ConfigurationError, UnsupportedOperationError
from .observables import Observable
from .solver import (
    RootEstimate,
    SolverConfig,
    expand_bracket,
    find_root_bracketed,
    find_root_newton,
    solve_constraints,
)
from .statistic import ChiSquare, Empty, TestStatistic

logger = logging.getLogger(__name__)

# Probability mass within one standard deviation of a Gaussian
ONE_SIGMA = 0.682689492137086

# Accepted deviation of quantile and density-matching checks
CONSISTENCY_TOLERANCE = 1e-4

# Flexible input types the user may pass for a covariance
CovInput = Union[float, int, np.ndarray, Sequence[float], Sequence[Sequence[float]]]


def _gaussian_sigmas(p: float) -> float:
    """Number of Gaussian sigmas enclosing the central probability `p`."""
    return float(norm.ppf((p + 1.0) / 2.0))


def _check_interval(kind: str, minimum: float, central: float, maximum: float) -> None:
    if minimum >= central:
        raise ConfigurationError(f"{kind}: min value >= central value")
    if maximum <= central:
        raise ConfigurationError(f"{kind}: max value <= central value")


class LogLikelihoodBlock(ABC):
    """One probability-density term contributing to the total log-likelihood."""

    @property
    @abstractmethod
    def number_of_observations(self) -> int:
        """Observations represented by this block; 0 marks a prior-only term."""

    @abstractmethod
    def evaluate(self) -> float: ...

    @abstractmethod
    def sample(self, rng: np.random.Generator) -> float: ...

    @abstractmethod
    def significance(self) -> float: ...

    @abstractmethod
    def clone(self, cache: ObservableCache) -> "LogLikelihoodBlock": ...

    def primary_test_statistic(self) -> TestStatistic:
        return Empty()


class GaussianBlock(LogLikelihoodBlock):
    """
    Two-piece normal density x^{+b}_{-a} with mode x.

    The pieces are weighted so that the density is continuous at the mode and
    normalised to one:

        P(y) = 2 / (a + b) * [ b N(y|x,b) theta(y-x) + a N(y|x,a) theta(x-y) ]
    """

    def __init__(
        self,
        cache: ObservableCache,
        index: int,
        minimum: float,
        central: float,
        maximum: float,
        number_of_observations: int,
    ) -> None:
        self.cache = cache
        self.index = index
        self.mode = float(central)
        self.sigma_lower = float(central - minimum)
        self.sigma_upper = float(maximum - central)
        self._norm = math.log(
            math.sqrt(2.0 / math.pi) / (self.sigma_lower + self.sigma_upper)
        )
        self._number_of_observations = int(number_of_observations)

    @property
    def number_of_observations(self) -> int:
        return self._number_of_observations

    def _sigma(self, value: float) -> float:
        return self.sigma_upper if value > self.mode else self.sigma_lower

    def evaluate(self) -> float:
        value = self.cache[self.index]
        chi = (value - self.mode) / self._sigma(value)
        return self._norm - chi**2 / 2.0

    def sample(self, rng: np.random.Generator) -> float:
        """
        Log-density of a pseudo-measurement drawn around the theory prediction.

        There is no forward model, so the experimental distribution is mirrored
        and shifted onto the fixed prediction: the prediction becomes the mode,
        the experimental uncertainties are kept. A prediction in the slowly
        falling tail of the measurement thus yields likely pseudo-data.
        """
        a, b = self.sigma_lower, self.sigma_upper
        theory = self.cache[self.index]

        u = rng.random()
        p_upper = b / (a + b)
        if u < p_upper:
            sigma, v = b, u / p_upper
        else:
            sigma, v = a, (u - p_upper) / (1.0 - p_upper)

        # inverse transform of the half-normal
        obs = theory + sigma * float(norm.ppf(0.5 + 0.5 * v))

        chi = (theory - obs) / sigma
        return self._norm - chi**2 / 2.0

    def significance(self) -> float:
        # positive if the measurement exceeds the prediction
        value = self.cache[self.index]
        return (self.mode - value) / self._sigma(value)

    def primary_test_statistic(self) -> TestStatistic:
        return ChiSquare(self.significance() ** 2)

    def clone(self, cache: ObservableCache) -> "GaussianBlock":
        return GaussianBlock(
            cache,
            cache.adopt(self.cache, self.index),
            self.mode - self.sigma_lower,
            self.mode,
            self.mode + self.sigma_upper,
            self._number_of_observations,
        )

    def __str__(self) -> str:
        result = f"Gaussian: {self.mode:g}"
        if self.sigma_upper == self.sigma_lower:
            result += f" +- {self.sigma_upper:g}"
        else:
            result += f" + {self.sigma_upper:g} - {self.sigma_lower:g}"
        if self._number_of_observations == 0:
            result += "; no observation"
        return result


def _log_gamma_cdf(x: float, nu: float, lam: float, alpha: float) -> float:
    with np.errstate(over="ignore"):
        z = np.exp((x - nu) / lam)
    if lam < 0:
        return float(gammaincc(alpha, z))
    return float(gammainc(alpha, z))


class LogGammaBlock(LogLikelihoodBlock):
    """
    Log-gamma density for asymmetric uncertainties, cf. [C2004].

    With z = (x - nu) / lambda the density is

        log P(x) = -lnGamma(alpha) - log|lambda| + alpha z - exp(z)

    The mode sits at `central`; lambda < 0 gives a positive skew.
    """

    def __init__(
        self,
        cache: ObservableCache,
        index: int,
        minimum: float,
        central: float,
        maximum: float,
        lam: float,
        alpha: float,
        number_of_observations: int,
    ) -> None:
        self.cache = cache
        self.index = index
        self.central = float(central)
        self.sigma_lower = float(central - minimum)
        self.sigma_upper = float(maximum - central)
        self.lam = float(lam)
        self.alpha = float(alpha)
        self.nu = self.central - self.lam * math.log(self.alpha)
        self._norm = -float(gammaln(self.alpha)) - math.log(abs(self.lam))
        self._number_of_observations = int(number_of_observations)

    @property
    def number_of_observations(self) -> int:
        return self._number_of_observations

    def cdf(self, x: float) -> float:
        return _log_gamma_cdf(x, self.nu, self.lam, self.alpha)

    def _log_density(self, x: float) -> float:
        z = (x - self.nu) / self.lam
        with np.errstate(over="ignore"):
            return self._norm + self.alpha * z - float(np.exp(z))

    def evaluate(self) -> float:
        return self._log_density(self.cache[self.index])

    def sample(self, rng: np.random.Generator) -> float:
        """
        Log-density of the fixed central value under a shifted distribution.

        Draws a pseudo-measurement within three standard deviations of the
        central value, moves the mode onto it and evaluates at `central`
        rather than at the prediction.
        """
        range_min = self.central - 3.0 * self.sigma_lower
        range_max = self.central + 3.0 * self.sigma_upper

        while True:
            x = self.lam * math.log(rng.standard_gamma(self.alpha)) + self.nu
            if range_min < x < range_max:
                break

        nu_pseudo = x - self.lam * math.log(self.alpha)
        z = (self.central - nu_pseudo) / self.lam
        return self._norm + self.alpha * z - math.exp(z)

    def significance(self, config: SolverConfig = SolverConfig()) -> float:
        """
        Gaussian-equivalent significance of the smallest interval around the mode
        that reaches the prediction.

        The interval ends at the mirror point: the point on the other side of
        the mode with the same density as the prediction.
        """
        value = self.cache[self.index]
        if value == self.central:
            return 0.0

        z_value = (value - self.nu) / self.lam
        with np.errstate(over="ignore"):
            log_value = self.alpha * z_value - float(np.exp(z_value))

        def f(x: float) -> float:
            z = (x - self.nu) / self.lam
            with np.errstate(over="ignore"):
                return log_value - self.alpha * z + float(np.exp(z))

        def df(x: float) -> float:
            z = (x - self.nu) / self.lam
            with np.errstate(over="ignore"):
                return (float(np.exp(z)) - self.alpha) / self.lam

        estimate = find_root_newton(f, df, 2.0 * self.central - value, config)
        mirror = estimate.root
        on_opposite_side = (mirror - self.central) * (value - self.central) < 0
        if not (estimate.converged and on_opposite_side):
            logger.error(
                "Could not find the mirror point, stopped after %d iterations with f(%g) = %g",
                estimate.iterations,
                mirror,
                f(mirror),
            )
            end = expand_bracket(f, self.central, 2.0 * self.central - value, config)
            if f(end) < 0:
                # no sign change found, the bracket end is the best estimate
                mirror = end
            else:
                mirror = find_root_bracketed(
                    f, min(self.central, end), max(self.central, end), config
                ).root

        p = abs(self.cdf(value) - self.cdf(mirror))
        return (1.0 if self.central > value else -1.0) * _gaussian_sigmas(p)

    def clone(self, cache: ObservableCache) -> "LogGammaBlock":
        return LogGammaBlock(
            cache,
            cache.adopt(self.cache, self.index),
            self.central - self.sigma_lower,
            self.central,
            self.central + self.sigma_upper,
            self.lam,
            self.alpha,
            self._number_of_observations,
        )

    def __str__(self) -> str:
        result = (
            f"LogGamma: {self.central:g} + {self.sigma_upper:g} - {self.sigma_lower:g}"
            f" (nu = {self.nu:g}, lambda = {self.lam:g}, alpha = {self.alpha:g})"
        )
        if self._number_of_observations == 0:
            result += "; no observation"
        return result


def _log_gamma_residuals(
    lam: float, log_alpha: float, sigma_plus: float, sigma_minus: float
) -> list[float]:
    """
    Residuals of the standardised log-gamma conditions, mode at zero:

    - equal log-densities at +sigma_plus and -sigma_minus
    - 68.27% probability between them
    """
    alpha = math.exp(log_alpha)
    nu = -lam * log_alpha
    z_plus = (sigma_plus - nu) / lam
    z_minus = (-sigma_minus - nu) / lam

    first = alpha * z_plus - np.exp(z_plus) - alpha * z_minus + np.exp(z_minus)
    second = gammaincc(alpha, np.exp(z_plus)) - gammaincc(alpha, np.exp(z_minus)) - ONE_SIGMA
    return [float(first), float(second)]


def _reduced_log_gamma_fit(sigma_plus: float, config: SolverConfig) -> tuple[float, float]:
    """
    Standardised (lambda, alpha) from two one-dimensional solves, sigma_minus = 1.

    With u = -1/lambda the equal-density condition no longer depends on alpha:

        exp(u) - exp(-sigma_plus u) - (1 + sigma_plus) u = 0

    which has a single positive root. The probability between the endpoints
    then grows monotonically with alpha.
    """

    def density_mismatch(u: float) -> float:
        return math.expm1(u) - math.expm1(-sigma_plus * u) - (1.0 + sigma_plus) * u

    # root of the cubic expansion around u = 0
    u_guess = 3.0 * (sigma_plus**2 - 1.0) / (1.0 + sigma_plus**3)
    u_upper = expand_bracket(density_mismatch, 0.0, u_guess, config)
    u = find_root_bracketed(density_mismatch, 0.5 * u_guess, u_upper, config).root

    w_plus, w_minus = math.exp(-sigma_plus * u), math.exp(u)

    def mass_mismatch(log_alpha: float) -> float:
        alpha = math.exp(log_alpha)
        return float(
            gammaincc(alpha, alpha * w_plus) - gammaincc(alpha, alpha * w_minus) - ONE_SIGMA
        )

    lower, upper = math.log(1e-8), math.log(1e12)
    if not mass_mismatch(lower) < 0.0 < mass_mismatch(upper):
        raise ConfigurationError(
            f"LogGamma: no shape parameter reproduces the asymmetry {sigma_plus:g}"
        )
    log_alpha = find_root_bracketed(mass_mismatch, lower, upper, config).root
    return -1.0 / u, math.exp(log_alpha)


def _fit_log_gamma(
    sigma_lower: float, sigma_upper: float, config: SolverConfig = SolverConfig()
) -> tuple[float, float]:
    """Find (lambda, alpha) reproducing the given asymmetric one-sigma interval."""
    # standardise scales such that the smaller one is unity
    sigma_plus = max(sigma_lower, sigma_upper) / min(sigma_lower, sigma_upper)
    sigma_minus = 1.0
    if sigma_plus == 1.0:
        raise ConfigurationError(
            "LogGamma: symmetric uncertainties cannot be described; use a Gaussian block"
        )

    # the standardised problem has positive skew, i.e. negative lambda
    if sigma_upper > sigma_lower:
        lambda_scale = sigma_lower / sigma_minus
    else:
        lambda_scale = -sigma_upper / sigma_minus

    # empirical starting values, good to ~10% for asymmetries of 3-100%;
    # alpha depends only on sigma_plus, lambda is a pure scale
    lambda_initial = -56.0 + 55.0 * float(norm.cdf((sigma_plus - 1.0) / 0.05))
    alpha_initial = (1.13 / (sigma_plus - 1.0)) ** 1.3

    solution = solve_constraints(
        lambda p: _log_gamma_residuals(p["lambda"], p["log_alpha"], sigma_plus, sigma_minus),
        start={"lambda": lambda_initial, "log_alpha": math.log(alpha_initial)},
        bounds={"lambda": (-np.inf, -1e-12), "log_alpha": (-30.0, 30.0)},
    )
    if solution.valid:
        lam, alpha = solution.parameters["lambda"], math.exp(solution.parameters["log_alpha"])
    else:
        logger.debug(
            "Solution of constraints failed for sigma_plus = %g: residual %g; "
            "solving the reduced problem",
            sigma_plus,
            solution.value,
        )
        lam, alpha = _reduced_log_gamma_fit(sigma_plus, config)

    return lambda_scale * lam, alpha


def _verify_log_gamma(
    minimum: float, central: float, maximum: float, lam: float, alpha: float
) -> None:
    nu = central - lam * math.log(alpha)

    mass = _log_gamma_cdf(maximum, nu, lam, alpha) - _log_gamma_cdf(minimum, nu, lam, alpha)
    if not abs(mass - ONE_SIGMA) <= CONSISTENCY_TOLERANCE:
        raise ConfigurationError(
            "LogGamma: for the current parameter values, the interval [min, max] "
            f"contains {mass:.6f} instead of approx. 68%"
        )

    z_plus = (maximum - nu) / lam
    z_minus = (minimum - nu) / lam
    mismatch = alpha * z_plus - math.exp(z_plus) - alpha * z_minus + math.exp(z_minus)
    if not abs(mismatch) <= CONSISTENCY_TOLERANCE:
        raise ConfigurationError(
            "LogGamma: for the current parameter values, the probability density at min "
            "is not equal to the probability density at max"
        )


def _amoroso_cdf(x: float, limit: float, theta: float, alpha: float, beta: float) -> float:
    if x <= limit:
        return 0.0
    # Weibull transform
    with np.errstate(over="ignore"):
        w = np.power((x - limit) / theta, beta)
    if beta / theta < 0:
        return float(gammaincc(alpha, w))
    return float(gammainc(alpha, w))


def _amoroso_mode(limit: float, theta: float, alpha: float, beta: float) -> float:
    if beta > 0 and alpha * beta - 1.0 < 1e-13:
        return limit
    return limit + theta * (alpha - 1.0 / beta) ** (1.0 / beta)


def _check_amoroso_parameters(theta: float, alpha: float, beta: float) -> None:
    if theta <= 0:
        raise ConfigurationError(
            f"Amoroso: scale parameter theta ({theta}) must be positive for an upper limit"
        )
    if alpha <= 0:
        raise ConfigurationError(f"Amoroso: shape parameter alpha ({alpha}) must be positive")
    if beta == 0:
        raise ConfigurationError("Amoroso: shape parameter beta must not be zero")


class AmorosoBlock(LogLikelihoodBlock):
    """
    Amoroso (generalised gamma) density, bounded below by a physical limit a.

    With z = (x - a) / theta the density is

        log P(x) = -lnGamma(alpha) + log|beta / theta| + (alpha beta - 1) log z - z^beta
    """

    def __init__(
        self,
        cache: ObservableCache,
        index: int,
        physical_limit: float,
        theta: float,
        alpha: float,
        beta: float,
        number_of_observations: int,
    ) -> None:
        _check_amoroso_parameters(theta, alpha, beta)

        self.cache = cache
        self.index = index
        self.physical_limit = float(physical_limit)
        self.theta = float(theta)
        self.alpha = float(alpha)
        self.beta = float(beta)
        self._norm = -float(gammaln(self.alpha)) + math.log(abs(self.beta / self.theta))
        self._number_of_observations = int(number_of_observations)

    @property
    def number_of_observations(self) -> int:
        return self._number_of_observations

    @property
    def _boundary_mode(self) -> bool:
        return self.beta > 0 and self.alpha * self.beta - 1.0 < 1e-13

    def mode(self) -> float:
        return _amoroso_mode(self.physical_limit, self.theta, self.alpha, self.beta)

    def cdf(self, x: float) -> float:
        return _amoroso_cdf(x, self.physical_limit, self.theta, self.alpha, self.beta)

    def _log_density(self, x: float) -> float:
        z = (x - self.physical_limit) / self.theta
        if z < 0:
            return -np.inf
        with np.errstate(divide="ignore", over="ignore"):
            return float(
                self._norm + xlogy(self.alpha * self.beta - 1.0, z) - np.power(z, self.beta)
            )

    def evaluate(self) -> float:
        return self._log_density(self.cache[self.index])

    def sample(self, rng: np.random.Generator) -> float:
        """
        Log-density at a standard gamma draw w.

        The inverse Weibull transform z = w^(1/beta) would be undone again in
        the exponential, so only the power term needs z. As for the other
        univariate blocks, the draw is compared to the experimental
        distribution, not to the prediction.
        """
        w = rng.standard_gamma(self.alpha)
        z = w ** (1.0 / self.beta)
        return self._norm + (self.alpha * self.beta - 1.0) * math.log(z) - w

    def significance(self, config: SolverConfig = SolverConfig()) -> float:
        value = self.cache[self.index]

        # mode at the boundary: the significance is just the cumulative at the point
        if self._boundary_mode:
            return _gaussian_sigmas(self.cdf(value))

        mode = self.mode()
        if value <= self.physical_limit:
            return np.inf
        if value == mode:
            return 0.0

        z_value = (value - self.physical_limit) / self.theta

        def f(x: float) -> float:
            z = (x - self.physical_limit) / self.theta
            # avoid infinity at the physical limit
            if z <= 0.0:
                return sys.float_info.max
            return (self.alpha * self.beta - 1.0) * (
                math.log(z_value) - math.log(z)
            ) + float(np.power(z, self.beta) - np.power(z_value, self.beta))

        if value > mode:
            x_min, x_max = self.physical_limit, mode
        else:
            # widen the bracket until it contains the mirror point
            x_min = mode
            x_max = expand_bracket(f, mode, mode + (mode - value), config)

        if f(x_max) < 0:
            # no sign change found, the bracket end is the best estimate
            estimate = RootEstimate(x_max, config.max_iterations, False)
        else:
            estimate = find_root_bracketed(f, x_min, x_max, config)
        if not estimate.converged:
            logger.error(
                "Could not find the mirror point, stopped after %d iterations with f(%g) = %g",
                estimate.iterations,
                estimate.root,
                f(estimate.root),
            )

        p = abs(self.cdf(value) - self.cdf(estimate.root))
        return (1.0 if mode > value else -1.0) * _gaussian_sigmas(p)

    def clone(self, cache: ObservableCache) -> "AmorosoBlock":
        return AmorosoBlock(
            cache,
            cache.adopt(self.cache, self.index),
            self.physical_limit,
            self.theta,
            self.alpha,
            self.beta,
            self._number_of_observations,
        )

    def __str__(self) -> str:
        name = self.cache.observable(self.index).name
        result = (
            f"Amoroso: mode at {name} = {self.mode():.5g}"
            f" (a = {self.physical_limit:.5g}, theta = {self.theta:.5g},"
            f" alpha = {self.alpha:.5g}, beta = {self.beta:.5g})"
        )
        if self._number_of_observations == 0:
            result += "; no observation"
        return result


def _coerce_covariance(cov: object, n: int) -> NDArray[np.float64]:
    """
    Accept covariance in several convenient forms and produce a (n,n) float64 matrix:

    - scalar          -> scalar * identity(n)
    - 1D shape (n,)   -> diag(vector)
    - 2D shape (n,n)  -> as-is

    Raises if shape is incompatible, not symmetric or not positive-definite.
    """
    arr = np.array(cov, dtype=float)
    if arr.ndim == 0:  # scalar
        M = float(arr) * np.eye(n, dtype=float)
    elif arr.ndim == 1:
        if arr.size != n:
            raise ConfigurationError(
                f"MultivariateGaussian: dimensions of observables ({n}) and variances ({arr.size}) are not identical"
            )
        M = np.diag(arr)
    elif arr.ndim == 2:
        if arr.shape[0] != arr.shape[1]:
            raise ConfigurationError(
                "MultivariateGaussian: covariance matrix is not a square matrix"
            )
        if arr.shape != (n, n):
            raise ConfigurationError(
                "MultivariateGaussian: dimensions of observables and covariance matrix are not identical"
            )
        M = arr
    else:
        raise ConfigurationError("covariance must be scalar, (n,), or (n,n)")

    if not np.allclose(M, M.T, rtol=1e-8, atol=0.0):
        raise ConfigurationError("MultivariateGaussian: covariance matrix is not symmetric")

    # symmetrise tiny asymmetries
    M = 0.5 * (M + M.T)
    try:
        np.linalg.cholesky(M)
    except np.linalg.LinAlgError as e:
        raise ConfigurationError(
            "MultivariateGaussian: covariance matrix must be positive-definite"
        ) from e
    return cast(NDArray[np.float64], M)


class MultivariateGaussianBlock(LogLikelihoodBlock):
    """
    k-dimensional Gaussian with fixed mean and covariance:

        log P(x) = -k/2 log(2 pi) - 1/2 log det V - 1/2 (x - mu)^T V^{-1} (x - mu)
    """

    def __init__(
        self,
        cache: ObservableCache,
        indices: Sequence[int],
        mean: NDArray[np.float64],
        covariance: CovInput,
        number_of_observations: int,
    ) -> None:
        k = len(indices)
        mean_arr = np.array(mean, dtype=float)
        if mean_arr.ndim != 1 or mean_arr.size != k:
            raise ConfigurationError(
                "MultivariateGaussian: dimensions of observables and mean are not identical"
            )

        self.cache = cache
        self.indices = list(indices)
        self.mean: NDArray[np.float64] = mean_arr
        self.covariance = _coerce_covariance(covariance, k)

        # lower Cholesky factor, informally the square root of the covariance
        self._chol: NDArray[np.float64] = np.linalg.cholesky(self.covariance)
        self._covariance_inv: NDArray[np.float64] = cho_solve(
            (self._chol, True), np.eye(k)
        )
        _, logdet = np.linalg.slogdet(self.covariance)
        self._norm = -0.5 * k * math.log(2.0 * math.pi) - 0.5 * float(logdet)
        self._number_of_observations = int(number_of_observations)

    @property
    def number_of_observations(self) -> int:
        return self._number_of_observations

    @property
    def dimension(self) -> int:
        return len(self.indices)

    def chi_square(self) -> float:
        r = np.array([self.cache[i] for i in self.indices], dtype=float) - self.mean
        return float(r @ self._covariance_inv @ r)

    def evaluate(self) -> float:
        return self._norm - 0.5 * self.chi_square()

    def sample(self, rng: np.random.Generator) -> float:
        # Centring on the prediction and comparing to it again cancels the
        # prediction, so stay centred on zero.
        y = self._chol @ rng.standard_normal(self.dimension)
        return self._norm - 0.5 * float(y @ self._covariance_inv @ y)

    def significance(self) -> float:
        # probability of this excess or less, never negative
        p = float(chi2.cdf(self.chi_square(), self.dimension))
        return _gaussian_sigmas(p)

    def primary_test_statistic(self) -> TestStatistic:
        return ChiSquare(self.chi_square())

    def clone(self, cache: ObservableCache) -> "MultivariateGaussianBlock":
        return MultivariateGaussianBlock(
            cache,
            [cache.adopt(self.cache, i) for i in self.indices],
            self.mean.copy(),
            self.covariance.copy(),
            self._number_of_observations,
        )

    def __str__(self) -> str:
        def fmt(a: np.ndarray) -> str:
            return np.array2string(a, separator=" ")

        result = (
            f"Multivariate Gaussian: means = {fmt(self.mean)}, "
            f"covariance matrix = {fmt(self.covariance)}, "
            f"inverse covariance matrix = {fmt(self._covariance_inv)}"
        )
        if self._number_of_observations == 0:
            result += "; no observation"
        return result


class MixtureBlock(LogLikelihoodBlock):
    """Weighted sum of component densities. Weights are normalised by `mixture`."""

    def __init__(
        self, components: Sequence[LogLikelihoodBlock], weights: Sequence[float]
    ) -> None:
        self.components = list(components)
        self.weights = np.asarray(weights, dtype=float)

    @property
    def number_of_observations(self) -> int:
        return sum(c.number_of_observations for c in self.components)

    def evaluate(self) -> float:
        values = np.array([c.evaluate() for c in self.components], dtype=float)
        return float(logsumexp(values, b=self.weights))

    def sample(self, rng: np.random.Generator) -> float:
        raise UnsupportedOperationError("MixtureBlock.sample() is not supported")

    def significance(self) -> float:
        raise UnsupportedOperationError("MixtureBlock.significance() is not supported")

    def clone(self, cache: ObservableCache) -> "MixtureBlock":
        return MixtureBlock([c.clone(cache) for c in self.components], self.weights.copy())

    def __str__(self) -> str:
        return "Mixture: \n" + "".join(f"{c}\n" for c in self.components)


def gaussian(
    cache: ObservableCache,
    observable: Observable,
    minimum: float,
    central: float,
    maximum: float,
    number_of_observations: int = 1,
) -> GaussianBlock:
    """Asymmetric Gaussian constraint central^{+(maximum-central)}_{-(central-minimum)}."""
    _check_interval("Gaussian", minimum, central, maximum)

    index = cache.add(observable)
    return GaussianBlock(cache, index, minimum, central, maximum, number_of_observations)


def log_gamma(
    cache: ObservableCache,
    observable: Observable,
    minimum: float,
    central: float,
    maximum: float,
    number_of_observations: int = 1,
    *,
    lam: Optional[float] = None,
    alpha: Optional[float] = None,
) -> LogGammaBlock:
    """
    LogGamma constraint with mode `central` and 68% interval [minimum, maximum].

    Without `lam` and `alpha` both are fitted such that the density takes
    equal values at `minimum` and `maximum` and the interval holds 68.27%
    probability. When given, the same two conditions are verified instead.
    Either way a violation beyond 1e-4 raises ConfigurationError.
    """
    _check_interval("LogGamma", minimum, central, maximum)
    if (lam is None) != (alpha is None):
        raise ConfigurationError("LogGamma: lambda and alpha must be given together")
    if alpha is not None and alpha <= 0:
        raise ConfigurationError(f"LogGamma: shape parameter alpha ({alpha}) must be positive")
    if lam is not None and lam == 0:
        raise ConfigurationError("LogGamma: scale parameter lambda must not be zero")

    sigma_lower, sigma_upper = central - minimum, maximum - central
    sigma_plus = max(sigma_lower, sigma_upper) / min(sigma_lower, sigma_upper)
    if sigma_plus < 1.05:
        logger.warning(
            "For nearly symmetric uncertainties (%g vs %g), this procedure may fail to find "
            "the correct parameter values. Please use a Gaussian block instead.",
            sigma_lower,
            sigma_upper,
        )

    if lam is None or alpha is None:
        lam, alpha = _fit_log_gamma(sigma_lower, sigma_upper)
    _verify_log_gamma(minimum, central, maximum, lam, alpha)

    index = cache.add(observable)
    return LogGammaBlock(
        cache, index, minimum, central, maximum, lam, alpha, number_of_observations
    )


def _check_amoroso_quantile(
    x: float, p: float, limit: float, theta: float, alpha: float, beta: float
) -> None:
    cdf = _amoroso_cdf(x, limit, theta, alpha, beta)
    if not abs(cdf - p) <= CONSISTENCY_TOLERANCE:
        raise ConfigurationError(
            f"Amoroso: for the current parameter values, cdf(x_{round(100 * p)}) = {cdf:.6f} "
            f"deviates from {round(100 * p)}%"
        )


def amoroso_limit(
    cache: ObservableCache,
    observable: Observable,
    physical_limit: float,
    upper_limit_90: float,
    upper_limit_95: float,
    theta: float,
    alpha: float,
    number_of_observations: int = 1,
) -> AmorosoBlock:
    """Upper limit at 90% and 95% CL; beta = 1/alpha puts the mode on the physical limit."""
    if upper_limit_90 <= physical_limit:
        raise ConfigurationError("AmorosoLimit: upper_limit_90 <= physical_limit")
    if upper_limit_95 <= physical_limit:
        raise ConfigurationError("AmorosoLimit: upper_limit_95 <= physical_limit")
    if upper_limit_95 <= upper_limit_90:
        raise ConfigurationError("AmorosoLimit: upper_limit_95 <= upper_limit_90")
    _check_amoroso_parameters(theta, alpha, 1.0)

    beta = 1.0 / alpha
    _check_amoroso_quantile(upper_limit_90, 0.90, physical_limit, theta, alpha, beta)
    _check_amoroso_quantile(upper_limit_95, 0.95, physical_limit, theta, alpha, beta)

    index = cache.add(observable)
    return AmorosoBlock(
        cache, index, physical_limit, theta, alpha, beta, number_of_observations
    )


def amoroso_mode(
    cache: ObservableCache,
    observable: Observable,
    physical_limit: float,
    mode: float,
    upper_limit_90: float,
    upper_limit_95: float,
    theta: float,
    alpha: float,
    beta: float,
    number_of_observations: int = 1,
) -> AmorosoBlock:
    """Measurement given as mode plus 90% and 95% CL upper limits."""
    if mode <= physical_limit:
        raise ConfigurationError("AmorosoMode: mode <= physical_limit")
    if upper_limit_90 <= physical_limit:
        raise ConfigurationError("AmorosoMode: upper_limit_90 <= physical_limit")
    if upper_limit_95 <= upper_limit_90:
        raise ConfigurationError("AmorosoMode: upper_limit_95 <= upper_limit_90")
    _check_amoroso_parameters(theta, alpha, beta)

    actual = _amoroso_mode(physical_limit, theta, alpha, beta)
    if not abs(actual - mode) <= CONSISTENCY_TOLERANCE:
        raise ConfigurationError(
            f"Amoroso: for the current parameter values, mode() = {actual:.6g} "
            f"deviates from mode supplied {mode:.6g}"
        )
    _check_amoroso_quantile(upper_limit_90, 0.90, physical_limit, theta, alpha, beta)
    _check_amoroso_quantile(upper_limit_95, 0.95, physical_limit, theta, alpha, beta)

    index = cache.add(observable)
    return AmorosoBlock(
        cache, index, physical_limit, theta, alpha, beta, number_of_observations
    )


def amoroso_quantiles(
    cache: ObservableCache,
    observable: Observable,
    physical_limit: float,
    upper_limit_10: float,
    upper_limit_50: float,
    upper_limit_90: float,
    theta: float,
    alpha: float,
    beta: float,
    number_of_observations: int = 1,
) -> AmorosoBlock:
    """Measurement given by its 10%, 50% and 90% quantiles."""
    if upper_limit_10 <= physical_limit:
        raise ConfigurationError("Amoroso: upper_limit_10 <= physical_limit")
    if upper_limit_50 <= upper_limit_10:
        raise ConfigurationError("Amoroso: upper_limit_50 <= upper_limit_10")
    if upper_limit_90 <= upper_limit_50:
        raise ConfigurationError("Amoroso: upper_limit_90 <= upper_limit_50")
    _check_amoroso_parameters(theta, alpha, beta)

    _check_amoroso_quantile(upper_limit_10, 0.10, physical_limit, theta, alpha, beta)
    _check_amoroso_quantile(upper_limit_50, 0.50, physical_limit, theta, alpha, beta)
    _check_amoroso_quantile(upper_limit_90, 0.90, physical_limit, theta, alpha, beta)

    index = cache.add(observable)
    return AmorosoBlock(
        cache, index, physical_limit, theta, alpha, beta, number_of_observations
    )


def amoroso(
    cache: ObservableCache,
    observable: Observable,
    physical_limit: float,
    theta: float,
    alpha: float,
    beta: float,
    number_of_observations: int = 1,
) -> AmorosoBlock:
    """Amoroso density from raw parameters, without any quantile check."""
    _check_amoroso_parameters(theta, alpha, beta)

    index = cache.add(observable)
    return AmorosoBlock(
        cache, index, physical_limit, theta, alpha, beta, number_of_observations
    )


def multivariate_gaussian(
    cache: ObservableCache,
    observables: Sequence[Observable],
    mean: Sequence[float],
    covariance: CovInput,
    number_of_observations: Optional[int] = None,
) -> MultivariateGaussianBlock:
    """
    Correlated Gaussian constraint on several observables.

    `number_of_observations` defaults to the number of observables.
    """
    k = len(observables)
    mean_arr = np.array(mean, dtype=float)
    if mean_arr.ndim != 1 or mean_arr.size != k:
        raise ConfigurationError(
            "MultivariateGaussian: dimensions of observables and mean are not identical"
        )
    covariance = _coerce_covariance(covariance, k)

    indices = [cache.add(o) for o in observables]
    if number_of_observations is None:
        number_of_observations = k
    return MultivariateGaussianBlock(
        cache, indices, mean_arr, covariance, number_of_observations
    )


def mixture(
    components: Sequence[LogLikelihoodBlock], weights: Sequence[float]
) -> MixtureBlock:
    """Mixture of blocks; weights are normalised to unit sum."""
    if len(components) != len(weights):
        raise ConfigurationError("Mixture: components and weights don't match")
    if not components:
        raise ConfigurationError("Mixture: at least one component is required")

    w = np.asarray(weights, dtype=float)
    if np.any(w < 0):
        raise ConfigurationError("Mixture: weights must be non-negative")
    total = float(np.sum(w))
    if total <= 0:
        raise ConfigurationError("Mixture: weights must not sum to zero")

    norm_weights = w / total
    logger.debug("sum = %g, norm. weights %s", total, norm_weights)
    return MixtureBlock(components, norm_weights)
