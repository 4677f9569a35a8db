from __future__ import annotations


class FakeClock:
    """Callable clock for tests; starts at a fixed epoch and only moves on advance()."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
