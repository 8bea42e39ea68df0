from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import brentq, least_squares, minimize, newton

logger = logging.getLogger(__name__)

Residuals = Callable[[Mapping[str, float]], Sequence[float]]


@dataclass(frozen=True)
class SolverConfig:
    """Convergence settings shared by the scalar root finders."""

    tolerance: float = 1e-7
    max_iterations: int = 400

    @classmethod
    def default(cls) -> "SolverConfig":
        return cls()


@dataclass
class Solution:
    """Result of `solve_constraints`; `value` is the sum of absolute residuals."""

    parameters: dict[str, float]
    value: float
    valid: bool


@dataclass
class RootEstimate:
    root: float
    iterations: int
    converged: bool


def _params_to_vector(names: list[str], params: Mapping[str, float]) -> np.ndarray:
    return np.asarray([params[name] for name in names], dtype=float)


def _vector_to_params(names: list[str], x: np.ndarray) -> dict[str, float]:
    return {name: float(val) for name, val in zip(names, x)}


def solve_constraints(
    residuals: Residuals,
    start: Mapping[str, float],
    bounds: Optional[dict[str, Tuple[float, float]]] = None,
    tolerance: float = 1e-8,
) -> Solution:
    """
    Solve residuals(params) = 0 for the named parameters, subject to box bounds.

    Uses a bounded trust-region least-squares solve, with a Powell fallback on
    the squared residuals if that stalls. The start point is clipped into the
    interior of the bounds.
    """
    names = list(start.keys())
    lo = np.asarray([(bounds or {}).get(n, (-np.inf, np.inf))[0] for n in names], dtype=float)
    hi = np.asarray([(bounds or {}).get(n, (-np.inf, np.inf))[1] for n in names], dtype=float)
    x0 = _params_to_vector(names, start)
    span = np.where(np.isfinite(hi - lo), hi - lo, 1.0)
    x0 = np.clip(x0, lo + 1e-6 * span, hi - 1e-6 * span)

    def fun(x: np.ndarray) -> np.ndarray:
        with np.errstate(over="ignore", invalid="ignore"):
            return np.asarray(residuals(_vector_to_params(names, x)), dtype=float)

    def total(x: np.ndarray) -> float:
        r = fun(x)
        if not np.all(np.isfinite(r)):
            return np.inf
        return float(np.sum(np.abs(r)))

    res = least_squares(
        fun, x0, bounds=(lo, hi), method="trf", xtol=1e-15, ftol=1e-15, gtol=1e-15
    )
    x = res.x
    # Fallback if the trust region stalls away from a root
    if total(x) > tolerance:
        logger.debug("least-squares solve stalled (%s), trying Powell", res.message)
        alt = minimize(
            lambda v: float(np.sum(fun(v) ** 2)) if np.isfinite(total(v)) else np.inf,
            x,
            bounds=list(zip(lo, hi)),
            method="Powell",
            options={"xtol": 1e-12, "ftol": 1e-14, "maxiter": 10000},
        )
        if total(alt.x) < total(x):
            x = alt.x

    value = total(x)
    return Solution(_vector_to_params(names, x), value, value <= tolerance)


def find_root_newton(
    f: Callable[[float], float],
    fprime: Callable[[float], float],
    x0: float,
    config: SolverConfig = SolverConfig(),
) -> RootEstimate:
    """Derivative-aware root search started at `x0`."""
    root, info = newton(
        f,
        x0,
        fprime=fprime,
        tol=config.tolerance,
        maxiter=config.max_iterations,
        full_output=True,
        disp=False,
    )
    return RootEstimate(float(root), int(info.iterations), bool(info.converged))


def find_root_bracketed(
    f: Callable[[float], float],
    lower: float,
    upper: float,
    config: SolverConfig = SolverConfig(),
) -> RootEstimate:
    """Brent's method on [lower, upper]; f must change sign over the interval."""
    root, info = brentq(
        f,
        lower,
        upper,
        xtol=config.tolerance,
        maxiter=config.max_iterations,
        full_output=True,
        disp=False,
    )
    return RootEstimate(float(root), int(info.iterations), bool(info.converged))


def expand_bracket(
    f: Callable[[float], float],
    anchor: float,
    upper: float,
    config: SolverConfig = SolverConfig(),
) -> float:
    """
    Double the width of [anchor, upper] until f(upper) >= 0.

    Gives up after `config.max_iterations` doublings and returns the last upper
    end, logging an error.
    """
    width = upper - anchor
    for _ in range(config.max_iterations):
        if f(anchor + width) >= 0:
            return anchor + width
        width *= 2.0

    logger.error(
        "Could not bracket a sign change above %g after %d doublings",
        anchor,
        config.max_iterations,
    )
    return anchor + width
