"""
Transient analysis with trapezoidal integration and LTE step control.

The circuit equations C dx/dt = f(x, t) are discretized as

    alpha0 q(t) + alpha1 q(t_old) = beta0 f(t) + beta1 f(t_old)

with q = C x. Trapezoidal rule (beta0 = beta1 = 1/2) is used for regular
steps; algebraic unknowns (rows of C that carry no storage) and very short
steps use backward Euler (beta0 = 1, beta1 = 0). The local truncation
error is estimated against a quadratic predictor through the three
previous solutions and drives the next step size.
"""

from __future__ import annotations
from typing import NamedTuple, Sequence, TYPE_CHECKING

import logging
import math

import jax.numpy as jnp
from jax import Array

from .devices import MNASystem
from .errors import NewtonNonConvergence
from .linalg import algebraic_rows, mat_scale_add, mat_v_mult
from .network import GROUND

if TYPE_CHECKING:
    from .circuit import Circuit

logger = logging.getLogger(__name__)

ACCEPT = "accept"
LTE_REJECT = "lte_reject"
NEWTON_FAIL = "newton_fail"


class StepEvent(NamedTuple):
    """One step decision of the integrator."""
    time: float   # time point that was tried
    step: float   # step size that led to it
    kind: str     # ACCEPT, LTE_REJECT or NEWTON_FAIL


def interp_coeffs(t: float, t0: float, t1: float, t2: float) -> tuple[float, float, float]:
    """Lagrange basis of the quadratic through t0, t1, t2, evaluated at t."""
    dtt0 = t - t0
    dtt1 = t - t1
    dtt2 = t - t2
    dt0dt1 = t0 - t1
    dt0dt2 = t0 - t2
    dt1dt2 = t1 - t2
    return (
        (dtt1 * dtt2) / (dt0dt1 * dt0dt2),
        (dtt0 * dtt2) / (-dt0dt1 * dt1dt2),
        (dtt0 * dtt1) / (dt0dt2 * dt1dt2),
    )


class TransientAnalysis:
    """
    Time stepping driver for a Circuit.

    Usage:
        tran = TransientAnalysis(circuit, probe_names=("out",))
        result = tran.run(100, 0.0, 1e-3)
        result["out"]        # voltage samples
        result["_time_"]     # sample times
        tran.step_log        # every accept / reject decision

    Probe names are net labels or "I(<source>)"; their unknowns always take
    part in the LTE check.
    """

    def __init__(self, circuit: Circuit, probe_names: Sequence[str] = ()):
        self.circuit = circuit
        self.probe_names = tuple(probe_names)
        self.step_log: list[StepEvent] = []

    def _probe_index(self, name: str) -> int | None:
        ckt = self.circuit
        index = ckt.node_map.get(name)
        if index is not None:
            return None if index == GROUND else index
        for v in ckt.voltage_sources:
            if name == f"I({v.name})":
                return v.branch
        logger.warning("transient probe %r matches no net label or source", name)
        return None

    def _initial_solution(self) -> Array:
        return jnp.array([0.0 if ic is None else ic for ic in self.circuit.initial_conditions])

    def _start(self, skip_dc: bool) -> None:
        """Bring the circuit to its starting point: DC, or initial conditions."""
        ckt = self.circuit
        if skip_dc:
            ckt.finalize()
            ckt.solution = self._initial_solution()
        elif not ckt.diddc:
            try:
                ckt.dc()
            except NewtonNonConvergence as err:
                logger.warning("%s; trying transient analysis from the initial conditions", err)
                ckt.finalized = False
                ckt.finalize()
                ckt.solution = self._initial_solution()
        else:
            # an earlier run moved the solution away from the operating point
            ckt.finalize()
            ckt.solution = ckt.dc_solution

    def load(self, soln: Array) -> tuple[Array, Array]:
        """Newton system of one time step: (beta0 G + alpha0 C) dx = rhs."""
        ckt = self.circuit
        sys = MNASystem(Gl=ckt.Gl, G=ckt.Gl, C=ckt.C, rhs=mat_v_mult(ckt.Gl, soln, -1.0))
        for d in reversed(ckt.devices):
            sys = d.load_tran(sys, soln, self.time)
        ckt.G = sys.G
        self.c = sys.rhs
        # storage elements are linear
        self.q = mat_v_mult(ckt.C, soln)
        dqdt = self.alpha0 * self.q + self.alpha1 * self.oldq + self.alpha2 * self.old2q
        rhs = self.beta0 * self.c + self.beta1 * self.oldc - dqdt
        matrix = mat_scale_add(sys.G, ckt.C, self.beta0, self.alpha0)
        return matrix, rhs

    def pick_step(self) -> float:
        """Next step size from the LTE of the step just computed."""
        ckt = self.circuit
        opts = ckt.options
        p0, p1, p2 = interp_coeffs(self.time, self.oldt, self.old2t, self.old3t)
        trapcoeff = 0.5 * (self.time - self.oldt) / (self.time - self.old3t)
        pred = p0 * self.oldsol + p1 * self.old2sol + p2 * self.old3sol
        lte = jnp.abs(ckt.solution - pred) * trapcoeff
        lteratio = lte / (opts.lterel * (ckt.abstol + opts.reltol * ckt.soln_max))
        max_ratio = float(jnp.max(jnp.where(self.ltecheck, lteratio, 0.0), initial=0.0))

        h = self.time - self.oldt
        if max_ratio == 0.0:
            lte_step_ratio = opts.time_step_increase_factor
        else:
            lte_step_ratio = max_ratio ** (-1.0 / 3.0)  # cube root because trap

        if lte_step_ratio < 1.0:
            lte_step_ratio = max(lte_step_ratio, 1.0 / opts.lte_step_decrease_factor)
            return max(h * 0.75 * lte_step_ratio, self.min_step)

        lte_step_ratio = min(lte_step_ratio, opts.time_step_increase_factor)
        new_step = h * lte_step_ratio / 1.2 if lte_step_ratio > 1.2 else h
        return min(new_step, self.max_step)

    def next_breakpoint(self, t: float) -> float | None:
        """Earliest device breakpoint more than min_step after t."""
        points = [d.breakpoint(t + self.min_step) for d in self.circuit.devices]
        points = [p for p in points if p is not None]
        return min(points) if points else None

    def run(self, npts: int, tstart: float, tstop: float, skip_dc: bool = False) -> dict:
        """
        Integrate from tstart to tstop.

        Args:
            npts: Target number of points per source period (or per run)
            tstart, tstop: Time interval
            skip_dc: Start from the node initial conditions instead of DC

        Returns:
            {net label: samples, "I(name)": samples, "_time_": sample times}

        Raises:
            NewtonNonConvergence: Newton failed even at the minimum step
        """
        if tstop <= tstart:
            raise ValueError(f"tstop ({tstop}) must be after tstart ({tstart})")
        if npts < 1:
            raise ValueError(f"npts must be positive, got {npts}")

        ckt = self.circuit
        opts = ckt.options
        self._start(skip_dc)
        N = ckt.N

        self.ar = algebraic_rows(ckt.C, opts.eps) if N else jnp.zeros(0)
        ltecheck = self.ar == 0
        for name in self.probe_names:
            index = self._probe_index(name)
            if index is not None:
                ltecheck = ltecheck.at[index].set(True)
        self.ltecheck = ltecheck

        # shortest source period sets the resolution
        period = tstop - tstart
        for src in ckt.voltage_sources + ckt.current_sources:
            if src.src.period > 0:
                period = min(period, src.src.period)
        self.periods = math.ceil((tstop - tstart) / period)

        self.time = tstart
        self.max_step = (tstop - tstart) / (self.periods * npts)
        self.min_step = self.max_step / 1e8
        new_step = self.max_step / 1e6
        self.oldt = self.time - new_step
        self.old2t = self.oldt - new_step
        self.old3t = self.old2t - new_step

        self.alpha0, self.alpha1, self.alpha2 = 1.0, 0.0, 0.0
        self.beta0 = jnp.ones(N)
        self.beta1 = jnp.zeros(N)
        self.oldq = self.old2q = self.oldc = jnp.zeros(N)

        # initialize old currents, charges and solutions
        self.load(ckt.solution)
        self.oldsol = self.old2sol = self.old3sol = ckt.solution
        self.oldq = self.old2q = self.q
        self.oldc = self.c

        times = []
        response = []
        finished = False
        max_nsteps = self.periods * opts.max_steps_per_period
        # three backward Euler pre-steps at tstart, then regular steps
        for step_index in range(-3, max_nsteps):
            if step_index >= 0:
                response.append(ckt.solution)
            self.oldc = self.c
            self.old3sol, self.old2sol, self.oldsol = self.old2sol, self.oldsol, ckt.solution
            self.old2q, self.oldq = self.oldq, self.q

            if step_index < 0:
                self.old3t = self.old2t - (self.oldt - self.old2t)
                self.old2t = self.oldt - (tstart - self.oldt)
                self.oldt = tstart - (self.time - self.oldt)
                self.time = tstart
                beta0, beta1 = 1.0, 0.0
            else:
                times.append(self.time)
                self.old3t, self.old2t, self.oldt = self.old2t, self.oldt, self.time
                # come smoothly into the interval end
                if self.time >= tstop:
                    finished = True
                    break
                elif self.time + new_step > tstop:
                    self.time = tstop
                elif self.time + 1.5 * new_step > tstop:
                    self.time += (2 / 3) * (tstop - self.time)
                else:
                    self.time += new_step
                bp = self.next_breakpoint(self.oldt)
                if bp is not None and bp < self.time:
                    self.time = bp
                beta0, beta1 = 0.5, 0.5

            # no current averaging for algebraic equations
            beta0_vec = beta0 + self.ar * beta1
            beta1_vec = (1.0 - self.ar) * beta1

            guess = ckt.solution
            while True:
                h = self.time - self.oldt
                self.alpha0 = 1.0 / h
                self.alpha1 = -self.alpha0
                self.alpha2 = 0.0
                if h < opts.be_step_fraction * tstop:
                    self.beta0, self.beta1 = jnp.ones(N), jnp.zeros(N)
                else:
                    self.beta0, self.beta1 = beta0_vec, beta1_vec

                iterations = ckt.find_solution(self.load, opts.max_tran_iters)
                at_min_step = h < (1 + opts.reltol) * self.min_step

                if iterations is not None and (step_index <= 0 or at_min_step):
                    if step_index > 0:
                        new_step = opts.time_step_increase_factor * self.min_step
                    self.step_log.append(StepEvent(self.time, h, ACCEPT))
                    break
                elif iterations is None:
                    self.step_log.append(StepEvent(self.time, h, NEWTON_FAIL))
                    logger.debug("Newton failed at t=%g with step %g", self.time, h)
                    if at_min_step:
                        raise NewtonNonConvergence(
                            "transient", has_current_sources=bool(ckt.current_sources),
                            problem_node=ckt.problem_node, time=self.time,
                        )
                    ckt.solution = guess
                    self.time = self.oldt + max(h / opts.nr_step_decrease_factor, self.min_step)
                else:
                    new_step = self.pick_step()
                    if new_step < (1.0 - opts.reltol) * h:
                        self.step_log.append(StepEvent(self.time, h, LTE_REJECT))
                        logger.debug("LTE rejected step %g at t=%g, retrying with %g", h, self.time, new_step)
                        self.time = self.oldt + new_step
                    else:
                        self.step_log.append(StepEvent(self.time, h, ACCEPT))
                        break

        if not finished:
            logger.warning(
                "transient analysis stopped at t=%g after %d steps, result is partial",
                self.oldt, max_nsteps,
            )
        logger.debug("transient: %d time points, %d step decisions", len(times), len(self.step_log))

        n_points = len(times)
        samples = jnp.stack(response) if response else jnp.zeros((0, N))
        result = {}
        for label, index in ckt.node_map.items():
            result[label] = jnp.zeros(n_points) if index == GROUND else samples[:, index]
        for v in ckt.voltage_sources:
            result[f"I({v.name})"] = samples[:, v.branch]
        result["_time_"] = jnp.array(times)
        return result
