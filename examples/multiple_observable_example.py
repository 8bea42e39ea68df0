import numpy as np
from scipy.special import gammaincinv

from flavkit import (
    Constraint,
    FunctionObservable,
    LogLikelihood,
    ObservableCache,
    Parameters,
    amoroso_limit,
    log_gamma,
    multivariate_gaussian,
)

# Model: two observables sharing one parameter, plus a rare decay bounded from above
params = Parameters({"C": (-2.0, 0.0, 2.0)})
obs = [
    FunctionObservable("xsec1", lambda p: 1.0 + 0.4 * p["C"], params),
    FunctionObservable("xsec2", lambda p: 0.8 - 0.2 * p["C"], params),
]
rare = FunctionObservable("BR(rare)", lambda p: 1e-9 * p["C"] ** 2, params)

# upper limits at 90% and 95% CL of an Amoroso density with its mode at zero
theta, alpha = 2.0e-9, 1.5
ul90, ul95 = (theta * gammaincinv(alpha, q) ** alpha for q in (0.90, 0.95))

V = np.array([[0.04**2, 0.5 * 0.04 * 0.05], [0.5 * 0.04 * 0.05, 0.05**2]])

builder = ObservableCache(params)
constraints = [
    Constraint("xsec@Combined", obs, [multivariate_gaussian(builder, obs, [1.05, 0.78], V)]),
    Constraint("xsec1@Asymmetric", obs[:1], [log_gamma(builder, obs[0], 0.99, 1.02, 1.065)]),
    Constraint(
        "BR(rare)@Limit",
        [rare],
        [amoroso_limit(builder, rare, 0.0, ul90, ul95, theta, alpha)],
    ),
]

llh = LogLikelihood(params)
for c in constraints:
    llh.add(c)

grid = np.linspace(-1.0, 1.0, 41)
values = []
for c in grid:
    params.set("C", c)
    values.append(llh())

best = grid[int(np.argmax(values))]
params.set("C", best)
print(f"best C on the grid: {best:.2f}, log L = {max(values):.4f}")
print("p-value:", llh.bootstrap_p_value(1000))
for name, sigmas in llh.significances():
    print(f"{name:20s} {sigmas}")
