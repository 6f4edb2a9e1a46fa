"""Shared fixtures: deterministic random sources and pre-built engines."""

from __future__ import annotations

import pytest

from engine.simulation import SimulationEngine


class StubRandom:
    """Deterministic random source.

    ``random()`` always returns ``value`` (mutable between steps);
    ``choice()`` walks the sequence round-robin so a batch of five
    devices gets all five categories in order.
      value=0.0 -> every probability trigger fires, jitter is -20%
      value=0.5 -> no trigger fires (all thresholds are < 0.5), jitter is 0
    """

    def __init__(self, value: float = 0.0) -> None:
        self.value = value
        self._choices = 0

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        item = seq[self._choices % len(seq)]
        self._choices += 1
        return item


@pytest.fixture
def make_rng():
    """Factory for StubRandom instances."""
    return StubRandom


@pytest.fixture
def always_rng() -> StubRandom:
    """Random source under which every stochastic trigger succeeds."""
    return StubRandom(0.0)


@pytest.fixture
def never_rng() -> StubRandom:
    """Random source with zero jitter under which no trigger fires."""
    return StubRandom(0.5)


@pytest.fixture
def engine(always_rng) -> SimulationEngine:
    """Five-device engine driven by ``always_rng``; loops stopped at teardown."""
    eng = SimulationEngine(rng=always_rng)
    yield eng
    eng.pause()


@pytest.fixture
def quiet_engine(never_rng) -> SimulationEngine:
    """Five-device engine driven by ``never_rng`` (strong passwords, no jitter)."""
    eng = SimulationEngine(rng=never_rng)
    yield eng
    eng.pause()
