"""
Small-signal AC analysis.

The circuit is linearized at its DC operating point and, for a complex
unknown x + jy, the system

    G x - w C y = rhs
    w C x + G y = 0

is solved for every frequency as one real 2N x 2N system. The frequency
sweep is vectorized with jax.vmap.
"""

from __future__ import annotations
from functools import partial
from typing import TYPE_CHECKING

import math

import jax
import jax.numpy as jnp
from jax import Array

from .devices import MNASystem
from .errors import UnknownSource
from .linalg import mat_solve
from .network import GROUND

if TYPE_CHECKING:
    from .circuit import Circuit


def frequency_points(npts: int, fstart: float, fstop: float) -> list[float]:
    """npts points per decade from fstart up to fstop (last point included)."""
    delta_f = math.exp(math.log(10) / npts)
    fstop *= 1.0001  # capture that last freq point
    freqs = []
    f = fstart
    while f <= fstop:
        freqs.append(f)
        f *= delta_f
    return freqs


@partial(jax.jit, static_argnames=("eps",))
def solve_sweep(G: Array, C: Array, rhs: Array, omegas: Array, eps: float) -> Array:
    """
    Solve the doubled real system at every angular frequency.

    Returns:
        (n_freqs, 2N) array, [:, :N] real parts and [:, N:] imaginary parts
    """
    b = jnp.concatenate([rhs, jnp.zeros_like(rhs)])

    def solve_one(omega):
        M = jnp.block([[G, -omega * C], [omega * C, G]])
        return mat_solve(M, b, eps)

    return jax.vmap(solve_one)(omegas)


def unwrap_phase(phase: Array) -> Array:
    """
    Remove +/-360 degree jumps along the first axis.

    Whenever the step from the previous (unwrapped) point exceeds 90
    degrees, the offset of that column moves by 360 in the other direction.
    """
    if phase.shape[0] < 2:
        return phase

    def step(carry, p):
        prev, offset = carry
        jump = p + offset - prev
        offset = offset - 360.0 * (jump > 90.0) + 360.0 * (jump < -90.0)
        unwrapped = p + offset
        return (unwrapped, offset), unwrapped

    first = phase[0]
    _, rest = jax.lax.scan(step, (first, jnp.zeros_like(first)), phase[1:])
    return jnp.concatenate([first[None, :], rest], axis=0)


def ac_analysis(circuit: Circuit, npts: int, fstart: float, fstop: float,
                source_name: str) -> dict:
    """
    Frequency response to a unit excitation of one source.

    Args:
        circuit: Circuit to analyze (DC is run first)
        npts: Points per decade
        fstart, fstop: Frequency range in Hz
        source_name: Name of the exciting source

    Returns:
        {label: magnitudes, label + "_phase": phases in degrees,
         "_frequencies_": log10 of the sample frequencies}

    Raises:
        UnknownSource: no device is called source_name
    """
    if npts < 1 or fstart <= 0 or fstop < fstart:
        raise ValueError(f"invalid sweep: npts={npts}, fstart={fstart}, fstop={fstop}")

    source = circuit.device(source_name)
    if source is None:
        raise UnknownSource(source_name)

    circuit.dc()
    N = circuit.N
    # linearize nonlinear devices at the operating point
    G = circuit.stamp_dc(circuit.solution).G
    sys = MNASystem(Gl=circuit.Gl, G=G, C=circuit.C, rhs=jnp.zeros(N))
    rhs = source.load_ac(sys).rhs

    freqs = jnp.array(frequency_points(npts, fstart, fstop))
    solac = solve_sweep(G, circuit.C, rhs, 2 * jnp.pi * freqs, circuit.options.eps)
    x, y = solac[:, :N], solac[:, N:]
    magnitude = jnp.sqrt(x * x + y * y)
    phase = unwrap_phase(jnp.degrees(jnp.arctan2(y, x)))

    n_freqs = freqs.shape[0]
    result = {}
    for label, index in circuit.node_map.items():
        if index == GROUND:
            result[label] = jnp.zeros(n_freqs)
            result[label + "_phase"] = jnp.zeros(n_freqs)
        else:
            result[label] = magnitude[:, index]
            result[label + "_phase"] = phase[:, index]
    result["_frequencies_"] = jnp.log10(freqs)
    return result
