from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .blocks import LogLikelihoodBlock
from .observables import Observable


@dataclass(frozen=True)
class Constraint:
    """
    A named experimental measurement.

    Attributes
    ----------
    name : str
        Name of the constraint, e.g. "B^0->K^*0gamma::BR@BaBar-2009".
    observables : tuple[Observable, ...]
        The theory predictions the measurement constrains.
    blocks : tuple[LogLikelihoodBlock, ...]
        The densities comparing the predictions to the data.
    """

    name: str
    observables: Sequence[Observable]
    blocks: Sequence[LogLikelihoodBlock]

    def __post_init__(self) -> None:
        object.__setattr__(self, "observables", tuple(self.observables))
        object.__setattr__(self, "blocks", tuple(self.blocks))

    @property
    def number_of_observations(self) -> int:
        return sum(b.number_of_observations for b in self.blocks)
