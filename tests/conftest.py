import pytest

from flavkit import FunctionObservable, ObservableCache, Parameters


class Scalar:
    """A cache holding one observable whose prediction is the parameter `x`."""

    def __init__(self) -> None:
        self.parameters = Parameters({"x": (-100.0, 0.0, 100.0)})
        self.observable = FunctionObservable("x", lambda p: p["x"], self.parameters)
        self.cache = ObservableCache(self.parameters)

    def at(self, value: float) -> "Scalar":
        self.parameters.set("x", value)
        self.cache.update()
        return self


@pytest.fixture
def scalar() -> Scalar:
    return Scalar()
