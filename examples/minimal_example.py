import logging

from flavkit import FunctionObservable, LogLikelihood, Parameters

logging.basicConfig(level=logging.INFO)

# Model: one Wilson coefficient, one observable
params = Parameters({"C": (-2.0, 0.0, 2.0)})
xsec = FunctionObservable("xsec1", lambda p: 100 + 10 * p["C"] ** 2, params)

# Measurement 105 +5 -10
llh = LogLikelihood(params)
llh.add_gaussian(xsec, 95.0, 105.0, 110.0)

for c in (0.0, 0.5, 1.0):
    params.set("C", c)
    print(f"C = {c:4.1f}: log L = {llh():.4f}")

params.set("C", 0.7)
p, dp = llh.bootstrap_p_value(2000)
print(f"p-value at C = 0.7: {p:.3f} +- {dp:.3f}")

for name, sigmas in llh.significances():
    print(name, sigmas)
