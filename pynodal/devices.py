"""
Device models and their MNA stamps.

Every device implements the same small contract:

    finalize(circuit)                 one-time setup before loading
    load_linear(sys)                  time-invariant stamps into Gl and C
    load_dc(sys, soln)                nonlinear / source stamps into G and rhs
    load_tran(sys, soln, time)        like load_dc, sources use value(time)
    load_ac(sys)                      small-signal excitation into rhs
    breakpoint(time)                  next time the integrator must sample

Stamping is functional: each load_* receives an MNASystem and returns the
updated one. The linearized system is written as

    C dx/dt = G x + rhs

with rhs holding minus the currents leaving each node through the device.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import NamedTuple, TYPE_CHECKING

import math

import jax
import jax.numpy as jnp
from jax import Array

from .linalg import add_entry, add_to_vector, add_two_terminal, two_terminal_value
from .sources import Waveform

if TYPE_CHECKING:
    from .circuit import Circuit

EXP_ARG_MAX = 50.0  # less than single precision max
EXP_MAX = math.exp(EXP_ARG_MAX)

DIODE_IS = 1.0e-14
DIODE_VT_NORMAL = 25.8e-3
DIODE_VT_IDEAL = 0.1e-3

BJT_VT = 0.026
BJT_LEAK = 1.0e-12

FET_VT = 0.5
FET_KP = 20e-6
FET_LAMBDA = 0.05


class MNASystem(NamedTuple):
    """Matrices and vector a device stamps into."""
    Gl: Array   # linear conductances, loaded once
    G: Array    # full conductance matrix (Jacobian) for this iteration
    C: Array    # capacitances and inductances
    rhs: Array  # minus the device currents leaving each node


@jax.jit
def diode_eval(vd, vt, i_s):
    """
    Junction current and conductance.

    id = Is * (exp(vd/vt) - 1), gd = d(id)/d(vd). Beyond |vd/vt| = 50 the
    exponential is continued by its quadratic Taylor expansion around
    exp(50), which keeps id and gd continuous and avoids overflow.

    Returns:
        (id, gd)
    """
    exp_arg = vd / vt
    abs_exp_arg = jnp.abs(exp_arg)
    d_arg = abs_exp_arg - EXP_ARG_MAX
    beyond = d_arg > 0

    e = jnp.exp(jnp.minimum(abs_exp_arg, EXP_ARG_MAX))
    temp1 = jnp.where(beyond, EXP_MAX * (1 + d_arg + 0.5 * d_arg * d_arg), e)
    temp2 = jnp.where(beyond, EXP_MAX * (1 + d_arg), e)

    # exp(-x) = 1/exp(x)
    inv = 1.0 / temp1
    negative = exp_arg < 0
    temp2 = jnp.where(negative, inv * temp2 * inv, temp2)
    temp1 = jnp.where(negative, inv, temp1)

    return i_s * (temp1 - 1.0), i_s * (temp2 / vt)


class Device:
    """Base class: every stamp is a no-op unless a model overrides it."""
    kind = "Device"
    name: str

    def finalize(self, circuit: Circuit) -> None:
        pass

    def load_linear(self, sys: MNASystem) -> MNASystem:
        return sys

    def load_dc(self, sys: MNASystem, soln: Array) -> MNASystem:
        return sys

    def load_tran(self, sys: MNASystem, soln: Array, time: float) -> MNASystem:
        # storage elements are handled by the integrator through C
        return self.load_dc(sys, soln)

    def load_ac(self, sys: MNASystem) -> MNASystem:
        return sys

    def breakpoint(self, time: float) -> float | None:
        return None


@dataclass(frozen=True)
class Resistor(Device):
    name: str
    n1: int
    n2: int
    g: float
    kind = "R"

    def load_linear(self, sys):
        return sys._replace(Gl=add_two_terminal(sys.Gl, self.n1, self.n2, self.g))


@dataclass(frozen=True)
class Capacitor(Device):
    name: str
    n1: int
    n2: int
    value: float
    kind = "C"

    def load_linear(self, sys):
        return sys._replace(C=add_two_terminal(sys.C, self.n1, self.n2, self.value))


@dataclass(frozen=True)
class Inductor(Device):
    name: str
    n1: int
    n2: int
    branch: int
    value: float
    kind = "L"

    def load_linear(self, sys):
        # L on the diagonal of C because L di/dt = v(n1) - v(n2)
        Gl = add_entry(sys.Gl, self.n1, self.branch, 1.0)
        Gl = add_entry(Gl, self.n2, self.branch, -1.0)
        Gl = add_entry(Gl, self.branch, self.n1, -1.0)
        Gl = add_entry(Gl, self.branch, self.n2, 1.0)
        C = add_entry(sys.C, self.branch, self.branch, self.value)
        return sys._replace(Gl=Gl, C=C)


@dataclass(frozen=True)
class VoltageSource(Device):
    name: str
    npos: int
    nneg: int
    branch: int
    src: Waveform
    kind = "VSource"

    def load_linear(self, sys):
        Gl = add_entry(sys.Gl, self.branch, self.npos, 1.0)
        Gl = add_entry(Gl, self.branch, self.nneg, -1.0)
        Gl = add_entry(Gl, self.npos, self.branch, 1.0)
        Gl = add_entry(Gl, self.nneg, self.branch, -1.0)
        return sys._replace(Gl=Gl)

    def load_dc(self, sys, soln):
        return sys._replace(rhs=add_to_vector(sys.rhs, self.branch, self.src.dc))

    def load_tran(self, sys, soln, time):
        return sys._replace(rhs=add_to_vector(sys.rhs, self.branch, self.src.value(time)))

    def load_ac(self, sys):
        return sys._replace(rhs=add_to_vector(sys.rhs, self.branch, 1.0))

    def breakpoint(self, time):
        return self.src.inflection_point(time)


@dataclass(frozen=True)
class CurrentSource(Device):
    name: str
    npos: int
    nneg: int
    src: Waveform
    kind = "ISource"

    def _inject(self, sys, current):
        rhs = add_to_vector(sys.rhs, self.npos, -current)  # current flows into npos
        rhs = add_to_vector(rhs, self.nneg, current)       # and out of nneg
        return sys._replace(rhs=rhs)

    def load_dc(self, sys, soln):
        return self._inject(sys, self.src.dc)

    def load_tran(self, sys, soln, time):
        return self._inject(sys, self.src.value(time))

    def load_ac(self, sys):
        return self._inject(sys, 1.0)

    def breakpoint(self, time):
        return self.src.inflection_point(time)


@dataclass(frozen=True)
class Diode(Device):
    name: str
    anode: int
    cathode: int
    area: float
    type: str
    vt: float
    ais: float
    kind = "Diode"

    def load_dc(self, sys, soln):
        vd = two_terminal_value(soln, self.anode, self.cathode)
        i_d, g_d = diode_eval(vd, self.vt, self.ais)
        rhs = add_to_vector(sys.rhs, self.anode, -i_d)    # current flows into anode
        rhs = add_to_vector(rhs, self.cathode, i_d)       # and out of cathode
        G = add_two_terminal(sys.G, self.anode, self.cathode, g_d)
        return sys._replace(G=G, rhs=rhs)


@dataclass(frozen=True)
class BJT(Device):
    """Very basic Ebers-Moll model."""
    name: str
    c: int
    b: int
    e: int
    area: float
    a_ics: float
    a_ies: float
    alpha_f: float
    alpha_r: float
    type_sign: int
    vt: float = BJT_VT
    leak: float = BJT_LEAK
    kind = "BJT"

    def load_dc(self, sys, soln):
        c, b, e = self.c, self.b, self.e
        af, ar = self.alpha_f, self.alpha_r
        vbc = self.type_sign * two_terminal_value(soln, b, c)
        vbe = self.type_sign * two_terminal_value(soln, b, e)
        i_r, g_r = diode_eval(vbc, self.vt, self.a_ics)
        i_f, g_f = diode_eval(vbe, self.vt, self.a_ies)

        # emitter and collector currents are leaving the device
        ie = self.type_sign * (i_f - ar * i_r)
        ic = self.type_sign * (i_r - af * i_f)
        ib = -(ie + ic)

        rhs = add_to_vector(sys.rhs, b, ib)
        rhs = add_to_vector(rhs, c, ic)
        rhs = add_to_vector(rhs, e, ie)

        G = add_two_terminal(sys.G, b, e, g_f)
        G = add_two_terminal(G, b, c, g_r)
        G = add_two_terminal(G, c, e, self.leak)

        G = add_entry(G, b, c, ar * g_r)
        G = add_entry(G, b, e, af * g_f)
        G = add_entry(G, b, b, -(af * g_f + ar * g_r))

        G = add_entry(G, e, b, ar * g_r)
        G = add_entry(G, e, c, -ar * g_r)

        G = add_entry(G, c, b, af * g_f)
        G = add_entry(G, c, e, -af * g_f)
        return sys._replace(G=G, rhs=rhs)


@dataclass(frozen=True)
class Mosfet(Device):
    """Square-law MOSFET, no bulk connection, no body effect."""
    name: str
    d: int
    g: int
    s: int
    ratio: float
    type_sign: int
    vt: float = FET_VT
    kp: float = FET_KP
    lam: float = FET_LAMBDA
    kind = "Mosfet"

    @property
    def beta(self) -> float:
        return self.kp * self.ratio

    def load_dc(self, sys, soln):
        d, g, s = self.d, self.g, self.s
        sign = self.type_sign
        vds = sign * float(two_terminal_value(soln, d, s))
        if vds < 0:
            # drain and source swap roles
            d, s = s, d
            vds = -vds
        vgs = sign * float(two_terminal_value(soln, g, s))
        vgst = vgs - self.vt
        if vgst <= 0.0:
            # off, no subthreshold conduction
            return sys

        beta, lam = self.beta, self.lam
        if vgst < vds:
            # saturation
            gmgs = beta * (1 + lam * vds) * vgst
            ids = sign * 0.5 * gmgs * vgst
            gds = 0.5 * beta * vgst * vgst * lam
        else:
            # triode
            gmgs = beta * (1 + lam * vds)
            ids = sign * gmgs * vds * (vgst - 0.5 * vds)
            gds = gmgs * (vgst - vds) + beta * lam * vds * (vgst - 0.5 * vds)
            gmgs *= vds

        rhs = add_to_vector(sys.rhs, d, -ids)   # current flows into the drain
        rhs = add_to_vector(rhs, s, ids)        # and out of the source
        G = add_two_terminal(sys.G, d, s, gds)
        G = add_entry(G, s, s, gmgs)
        G = add_entry(G, d, s, -gmgs)
        G = add_entry(G, d, g, gmgs)
        G = add_entry(G, s, g, -gmgs)
        return sys._replace(G=G, rhs=rhs)


@dataclass(frozen=True)
class OpAmp(Device):
    """Ideal op-amp as a voltage-controlled voltage source with finite gain."""
    name: str
    np: int
    nn: int
    no: int
    ng: int
    branch: int
    gain: float
    kind = "OpAmp"

    def load_linear(self, sys):
        # (1/A)(v(no) - v(ng)) - (v(np) - v(nn)) = 0
        inv_a = 1.0 / self.gain
        Gl = add_entry(sys.Gl, self.no, self.branch, 1.0)
        Gl = add_entry(Gl, self.ng, self.branch, -1.0)
        Gl = add_entry(Gl, self.branch, self.no, inv_a)
        Gl = add_entry(Gl, self.branch, self.ng, -inv_a)
        Gl = add_entry(Gl, self.branch, self.np, -1.0)
        Gl = add_entry(Gl, self.branch, self.nn, 1.0)
        return sys._replace(Gl=Gl)
