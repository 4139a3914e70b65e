"""
Compiled circuit: MNA matrices, the Newton-Raphson core and DC analysis.

A Circuit is created from an immutable Network with Network.compile().
It owns the mutable analysis state (matrices, current solution, largest
magnitudes seen) and runs the analyses:

    circuit = net.compile()
    op = circuit.dc()                        # {"out": 2.5, "I(V1)": -2.5e-3, ...}
    bode = circuit.ac(10, 1.0, 1e6, "V1")
    wave = circuit.tran(100, 0.0, 1e-3)
"""

from __future__ import annotations
from types import MappingProxyType
from typing import Callable, Sequence, TYPE_CHECKING

import logging

import jax.numpy as jnp
from jax import Array

from .devices import CurrentSource, Device, MNASystem, VoltageSource
from .errors import NewtonNonConvergence, ShortCircuitError
from .linalg import mat_make, mat_rank, mat_solve_rq, mat_v_mult
from .network import GROUND
from .options import SimulationOptions, T_VOLTAGE

if TYPE_CHECKING:
    from .network import Network

logger = logging.getLogger(__name__)

# soln -> (matrix, rhs) of the Newton linear system
LoadFn = Callable[[Array], tuple[Array, Array]]


class Circuit:
    """
    Analysis state for a network.

    Attributes:
        N: Number of unknowns (node voltages and branch currents)
        ntypes: T_VOLTAGE or T_CURRENT per unknown
        node_map: Read-only net label -> index mapping (ground is -1)
        devices: Devices in insertion order
        device_map: Read-only name -> device mapping (last one wins)
        Gl, G, C: Linear conductances, full conductance, storage matrices
        solution: Current solution vector
        dc_solution: Operating point of the last successful dc()
        soln_max: Largest magnitude seen per unknown
    """

    def __init__(self, network: Network, options: SimulationOptions | None = None):
        self.network = network
        self.options = options if options is not None else SimulationOptions()

        self.N = network.num_nodes
        self.ntypes = tuple(n.kind for n in network.nodes)
        self.initial_conditions = tuple(n.ic for n in network.nodes)
        self.node_map = MappingProxyType(network.node_map)

        self.devices: tuple[Device, ...] = network.devices
        self.device_map = MappingProxyType({d.name: d for d in self.devices if d.name})
        self.voltage_sources = tuple(d for d in self.devices if isinstance(d, VoltageSource))
        self.current_sources = tuple(d for d in self.devices if isinstance(d, CurrentSource))

        self.finalized = False
        self.diddc = False
        self.problem_node: int | None = None

    def node_index(self, label: str) -> int:
        """Matrix index of a net label (-1 for ground). Raises KeyError."""
        return self.node_map[label]

    def device(self, name: str) -> Device | None:
        return self.device_map.get(name)

    @property
    def voltage_rows(self) -> Array:
        """Boolean mask of the voltage-type unknowns."""
        return jnp.array([t == T_VOLTAGE for t in self.ntypes], dtype=bool)

    def finalize(self) -> None:
        """
        Allocate matrices and load the linear devices once.

        Raises ShortCircuitError when the branch rows of the voltage sources
        are linearly dependent (a source loop or a shorted source); the
        circuit then stays un-finalized.
        """
        if self.finalized:
            return

        for d in reversed(self.devices):
            d.finalize(self)

        N = self.N
        sys = MNASystem(Gl=mat_make(N, N), G=mat_make(N, N), C=mat_make(N, N), rhs=jnp.zeros(N))
        for d in reversed(self.devices):
            sys = d.load_linear(sys)

        opts = self.options
        n_vsrc = len(self.voltage_sources)
        if n_vsrc > 0:
            branches = jnp.array([v.branch for v in self.voltage_sources])
            rank = mat_rank(sys.Gl[branches], opts.eps)
            logger.debug("voltage source rank check: rank %d for %d sources", rank, n_vsrc)
            if rank < n_vsrc:
                raise ShortCircuitError(n_vsrc, rank)

        self.Gl, self.G, self.C = sys.Gl, sys.G, sys.C
        self.matrix = mat_make(N, N + 1)
        self.rhs = jnp.zeros(N)
        self.solution = jnp.zeros(N)
        self.soln_max = jnp.zeros(N)
        self.abstol = jnp.where(self.voltage_rows, opts.v_abstol, opts.i_abstol)
        self.diddc = False
        self.finalized = True

    def find_solution(self, load: LoadFn, maxiters: int) -> int | None:
        """
        Newton-Raphson iteration starting from self.solution.

        The norm of the residual over the voltage-type rows is watched: when
        it grows, the last step is undone and voltage steps are limited to
        +/- v_newt_lim until the norm has decreased for ten iterations in a
        row. Convergence needs a loose residual check (waived on the last
        iteration) and every update |dx| <= abstol + reltol * soln_max.

        Args:
            load: Maps a solution guess to the (matrix, rhs) of the Newton step
            maxiters: Iteration limit

        Returns:
            Number of iterations used, or None if not converged (the index of
            a non-converged unknown is left in self.problem_node)
        """
        opts = self.options
        vrows = self.voltage_rows
        soln = self.solution
        d_sol = jnp.zeros(self.N)
        use_limiting = False
        down_count = 0
        abssum_old = 0.0
        abssum_compare = 0.0

        iteration = 0
        while iteration < maxiters:
            matrix, rhs = load(soln)
            self.matrix, self.rhs = matrix, rhs

            # v type variables go with i type equations
            abssum_rhs = float(jnp.sum(jnp.where(vrows, jnp.abs(rhs), 0.0)))

            if iteration > 0 and not use_limiting and abssum_old < abssum_rhs:
                # old rhs norm was better, undo last step and turn on limiting
                soln = soln - d_sol
                iteration -= 1
                use_limiting = True
            else:
                d_sol = mat_solve_rq(matrix, rhs, opts.eps)

                if abssum_rhs < abssum_old:
                    down_count += 1
                else:
                    down_count = 0
                if down_count > 10:
                    use_limiting = False
                    down_count = 0

                abssum_old = abssum_rhs

            if iteration == 0 or abssum_rhs > abssum_compare:
                abssum_compare = abssum_rhs

            converged = not (
                iteration < maxiters - 1
                and abssum_rhs > opts.res_check_abs + opts.res_check_rel * abssum_compare
            )

            if use_limiting:
                lim = opts.v_newt_lim
                d_sol = jnp.where(vrows, jnp.clip(d_sol, -lim, lim), d_sol)
            soln = soln + d_sol

            failing = jnp.abs(d_sol) > self.abstol + opts.reltol * self.soln_max
            if bool(jnp.any(failing)):
                converged = False
                self.problem_node = int(jnp.argmax(failing))

            if converged:
                self.solution = soln
                self.soln_max = jnp.maximum(self.soln_max, jnp.abs(soln))
                return iteration + 1
            iteration += 1

        self.solution = soln
        return None

    def stamp_dc(self, soln: Array) -> MNASystem:
        """Linear part plus every device's DC stamps at soln."""
        sys = MNASystem(Gl=self.Gl, G=self.Gl, C=self.C, rhs=mat_v_mult(self.Gl, soln, -1.0))
        for d in reversed(self.devices):
            sys = d.load_dc(sys, soln)
        return sys

    def load_dc(self, soln: Array) -> tuple[Array, Array]:
        """Newton system for the operating point: G dx = -f(x)."""
        sys = self.stamp_dc(soln)
        self.G = sys.G
        return sys.G, sys.rhs

    def dc(self) -> dict[str, float]:
        """
        DC operating point.

        Returns:
            {net label: voltage} for every label (ground labels give 0.0),
            plus "I(name)" for the current of each voltage source

        Raises:
            ShortCircuitError: voltage source loop
            NewtonNonConvergence: Newton failed within dc_max_iters
        """
        self.finalize()
        iterations = self.find_solution(self.load_dc, self.options.dc_max_iters)
        if iterations is None:
            raise NewtonNonConvergence(
                "DC", has_current_sources=bool(self.current_sources),
                problem_node=self.problem_node,
            )
        logger.debug("DC converged in %d iterations", iterations)
        self.diddc = True
        self.dc_solution = self.solution

        result = {}
        for label, index in self.node_map.items():
            result[label] = 0.0 if index == GROUND else float(self.solution[index])
        for v in self.voltage_sources:
            result[f"I({v.name})"] = float(self.solution[v.branch])
        return result

    def ac(self, npts: int, fstart: float, fstop: float, source_name: str) -> dict:
        """
        Small-signal frequency response driven by one source.

        See pynodal.ac.ac_analysis.
        """
        from .ac import ac_analysis
        return ac_analysis(self, npts, fstart, fstop, source_name)

    def tran(self, npts: int, tstart: float, tstop: float,
             probe_names: Sequence[str] = (), skip_dc: bool = False) -> dict:
        """
        Transient response from tstart to tstop.

        See pynodal.transient.TransientAnalysis.
        """
        from .transient import TransientAnalysis
        return TransientAnalysis(self, probe_names).run(npts, tstart, tstop, skip_dc=skip_dc)
