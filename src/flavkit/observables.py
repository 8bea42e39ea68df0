from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Protocol

from .parameters import Parameters

Params = Mapping[str, float]
PredictionFunction = Callable[[Params], float]


class Observable(Protocol):
    """Protocol for parameter-dependent theory predictions consumed by the cache."""

    @property
    def name(self) -> str: ...

    def evaluate(self) -> float: ...

    def clone(self, parameters: Parameters) -> "Observable": ...


@dataclass(frozen=True, eq=False)
class FunctionObservable:
    """
    A single observable defined by a prediction function.

    The function takes the bound parameter set (name -> value) and returns a
    scalar prediction. Instances compare by identity: two observables with the
    same name are still distinct predictions.
    """

    name: str
    predict: PredictionFunction
    parameters: Parameters

    def evaluate(self) -> float:
        return float(self.predict(self.parameters))

    def clone(self, parameters: Parameters) -> "FunctionObservable":
        """Bind the same prediction function to another parameter set."""
        return FunctionObservable(self.name, self.predict, parameters)
