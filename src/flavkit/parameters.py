from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Mapping, Tuple

from .errors import UnknownParameterError

# name -> (min, central, max)
ParameterTemplates = Mapping[str, Tuple[float, float, float]]


@dataclass
class _ParameterData:
    name: str
    min: float
    central: float
    max: float
    value: float


class Parameter:
    """
    Live handle to one entry of a Parameters set.

    Reading `value` always returns the current value of the owning set;
    assigning to it mutates the set.
    """

    def __init__(self, owner: "Parameters", index: int) -> None:
        self._owner = owner
        self._index = index

    @property
    def _data(self) -> _ParameterData:
        return self._owner._data[self._index]

    @property
    def name(self) -> str:
        return self._data.name

    @property
    def min(self) -> float:
        return self._data.min

    @property
    def central(self) -> float:
        return self._data.central

    @property
    def max(self) -> float:
        return self._data.max

    @property
    def value(self) -> float:
        return self._data.value

    @value.setter
    def value(self, value: float) -> None:
        self._owner.set(self.name, value)

    def __float__(self) -> float:
        return self.value

    def __repr__(self) -> str:
        d = self._data
        return f"Parameter({d.name!r}, value={d.value}, range=[{d.min}, {d.max}])"


class Parameters(Mapping[str, float]):
    """
    A named set of mutable parameter values.

    Behaves as a read-only mapping name -> current value, so prediction
    functions can be written as ``lambda p: 100.0 + 10.0 * p["C"]``.
    Mutation goes through `set` or a `Parameter` handle. Every mutation bumps
    `generation`, which lets caches decide whether predictions are stale.
    """

    def __init__(self, templates: ParameterTemplates) -> None:
        self._data: list[_ParameterData] = []
        self._index: dict[str, int] = {}
        for name, (lo, central, hi) in templates.items():
            self._index[name] = len(self._data)
            self._data.append(
                _ParameterData(name, float(lo), float(central), float(hi), float(central))
            )
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def parameter(self, name: str) -> Parameter:
        if name not in self._index:
            raise UnknownParameterError(name)
        return Parameter(self, self._index[name])

    def set(self, name: str, value: float) -> None:
        if name not in self._index:
            raise UnknownParameterError(name)
        self._data[self._index[name]].value = float(value)
        self._generation += 1

    def clone(self) -> "Parameters":
        """Return a copy with independent storage."""
        result = Parameters({})
        result._data = [
            _ParameterData(d.name, d.min, d.central, d.max, d.value) for d in self._data
        ]
        result._index = dict(self._index)
        return result

    def __getitem__(self, name: str) -> float:
        if name not in self._index:
            raise UnknownParameterError(name)
        return self._data[self._index[name]].value

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        values = ", ".join(f"{d.name}={d.value}" for d in self._data)
        return f"Parameters({values})"
