"""Exceptions raised by the simulation engine."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for analysis failures."""


class ShortCircuitError(SimulationError):
    """Voltage sources form a loop or a source is shorted by a wire."""

    def __init__(self, n_sources: int, rank: int):
        self.n_sources = n_sources
        self.rank = rank
        super().__init__(
            f"Circuit has a voltage source loop or a source shorted by a wire "
            f"(rank {rank} for {n_sources} sources); remove the source or the "
            f"wire causing the short"
        )


class NewtonNonConvergence(SimulationError):
    """Newton iteration did not converge within its iteration limit."""

    def __init__(self, analysis: str, has_current_sources: bool = False,
                 problem_node: int | None = None, time: float | None = None):
        self.analysis = analysis
        self.has_current_sources = has_current_sources
        self.problem_node = problem_node
        self.time = time
        if has_current_sources:
            hint = "do your current sources have a conductive path to ground?"
        else:
            hint = "it may be the circuit or it may be the simulator"
        where = f" at t={time:g}" if time is not None else ""
        super().__init__(f"Newton method failed in {analysis} analysis{where}, {hint}")


class UnknownSource(SimulationError, KeyError):
    """AC analysis refers to a device name that does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"AC analysis refers to unknown source {name!r}")

    def __str__(self):
        return self.args[0]


class DimensionMismatch(SimulationError, ValueError):
    """Matrix/vector shapes are incompatible (a stamping bug)."""
