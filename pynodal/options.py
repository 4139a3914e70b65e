"""Simulation options for the MNA engine.

All numerical knobs of the Newton core and the transient integrator live
here so that a Circuit can be compiled with its own settings:

    circuit = net.compile(SimulationOptions(reltol=1e-3))
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields

# Unknown types in the linear system
T_VOLTAGE = 0
T_CURRENT = 1


@dataclass
class SimulationOptions:
    """Tolerances and iteration limits.

    Invalid values raise ValueError on construction.
    """

    v_newt_lim: float = 0.3
    """Newton voltage step limit (V), used once the residual norm grows."""

    v_abstol: float = 1e-6
    """Absolute tolerance for voltage unknowns (V)."""

    i_abstol: float = 1e-12
    """Absolute tolerance for current unknowns (A)."""

    eps: float = 1e-12
    """Zero threshold for pivots and row norms, relative to matrix scale."""

    dc_max_iters: int = 1000
    """Max Newton iterations for the DC operating point."""

    max_tran_iters: int = 20
    """Max Newton iterations per transient time point."""

    time_step_increase_factor: float = 2.0
    """Largest growth of the time step allowed by LTE in one step."""

    lte_step_decrease_factor: float = 8.0
    """Largest shrink of the time step forced by LTE in one step."""

    nr_step_decrease_factor: float = 4.0
    """Time step divisor after a Newton failure."""

    reltol: float = 1e-4
    """Relative tolerance against the largest magnitude seen per unknown."""

    lterel: float = 10.0
    """LTE to Newton tolerance ratio (should stay >= 10)."""

    max_steps_per_period: int = 50000
    """Hard cap on transient steps per detected source period."""

    be_step_fraction: float = 1e-4
    """Steps shorter than this fraction of tstop fall back to backward Euler."""

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if value <= 0:
                raise ValueError(f"{f.name} must be positive, got {value}")
        if self.time_step_increase_factor <= 1.0:
            raise ValueError("time_step_increase_factor must be > 1")
        if self.nr_step_decrease_factor <= 1.0:
            raise ValueError("nr_step_decrease_factor must be > 1")

    @property
    def res_check_abs(self) -> float:
        """Loose absolute residual check for Newton convergence."""
        return math.sqrt(self.i_abstol)

    @property
    def res_check_rel(self) -> float:
        """Loose relative residual check for Newton convergence."""
        return math.sqrt(self.reltol)
