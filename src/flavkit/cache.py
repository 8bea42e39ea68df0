from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from .observables import Observable
from .parameters import Parameters


class ObservableCache:
    """
    Memoised predictions of all observables used by one likelihood.

    Observables are tracked by object identity and addressed by dense integer
    ids, which stay valid for the lifetime of the cache. Blocks only read
    values through ``cache[id]``; `update` is the single place where
    predictions are computed.
    """

    def __init__(self, parameters: Parameters) -> None:
        self._parameters = parameters
        self._observables: list[Observable] = []
        self._values: NDArray[np.float64] = np.empty(0, dtype=float)
        # id(source observable) -> (source observable, local id)
        self._adopted: dict[int, tuple[Observable, int]] = {}
        self._generation: Optional[int] = None

    @property
    def parameters(self) -> Parameters:
        return self._parameters

    def add(self, observable: Observable) -> int:
        for i, o in enumerate(self._observables):
            if o is observable:
                return i

        self._observables.append(observable)
        self._values = np.append(self._values, np.nan)
        self._generation = None
        return len(self._observables) - 1

    def adopt(self, source: "ObservableCache", index: int) -> int:
        """
        Return the id on this cache of the counterpart of ``source.observable(index)``.

        Counterparts are clones bound to this cache's parameters. Adopting the
        same source observable twice yields the same id, and a cache made by
        ``source.clone(...)`` maps every source id onto itself.
        """
        if source is self:
            return index

        observable = source.observable(index)
        for i, o in enumerate(self._observables):
            if o is observable:
                return i

        entry = self._adopted.get(id(observable))
        if entry is not None and entry[0] is observable:
            return entry[1]

        result = self.add(observable.clone(self._parameters))
        self._adopted[id(observable)] = (observable, result)
        return result

    def update(self) -> None:
        """Recompute every tracked prediction, unless nothing changed since the last call."""
        generation = self._parameters.generation
        if self._generation == generation:
            return

        for i, o in enumerate(self._observables):
            self._values[i] = o.evaluate()
        self._generation = generation

    def observable(self, index: int) -> Observable:
        return self._observables[index]

    def clone(self, parameters: Parameters) -> "ObservableCache":
        """Clone every observable onto `parameters`, preserving the id of each one."""
        result = ObservableCache(parameters)
        for o in self._observables:
            index = result.add(o.clone(parameters))
            result._adopted[id(o)] = (o, index)
        return result

    def __getitem__(self, index: int) -> float:
        return float(self._values[index])

    def __len__(self) -> int:
        return len(self._observables)

    def __repr__(self) -> str:
        names = ", ".join(o.name for o in self._observables)
        return f"ObservableCache([{names}])"
