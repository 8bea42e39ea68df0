from __future__ import annotations

from dataclasses import dataclass


class TestStatistic:
    """Summary statistic a block reports for goodness-of-fit bookkeeping."""

    def __str__(self) -> str:
        return "empty"


@dataclass(frozen=True)
class ChiSquare(TestStatistic):
    value: float

    def __str__(self) -> str:
        return f"chi^2 = {self.value:g}"


@dataclass(frozen=True)
class Empty(TestStatistic):
    """Placeholder for blocks without a natural test statistic."""
