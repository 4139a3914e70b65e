"""pynodal - JAX circuit simulator using Modified Nodal Analysis.

Analyses:
    - dc: Operating point by Newton-Raphson
    - ac: Small-signal frequency response around the operating point
    - tran: Transient response, trapezoidal rule with LTE step control

Components:
    - R, C, L: Basic passive components
    - VSource, ISource: Independent sources with waveforms (step, pulse, sin, pwl, ...)
    - Diode, NPN, PNP, NFet, PFet: Nonlinear semiconductor models
    - OpAmp: Finite-gain voltage amplifier

Usage:
    from pynodal import Network, R, C, VSource

    net = Network()
    net, n_in = net.node("in")
    net, n_out = net.node("out")
    net, _ = VSource(net, n_in, net.gnd, name="V1", value="step(0,1,0)")
    net, _ = R(net, n_in, n_out, name="R1", value="1k")
    net, _ = C(net, n_out, net.gnd, name="C1", value="1u")
    result = net.compile().tran(100, 0.0, 5e-3)
"""

import logging

import jax

# device currents go down to 1e-14 A, float32 cannot resolve them
jax.config.update("jax_enable_x64", True)

from .options import SimulationOptions, T_VOLTAGE, T_CURRENT
from .errors import (
    SimulationError,
    ShortCircuitError,
    NewtonNonConvergence,
    UnknownSource,
    DimensionMismatch,
)
from .units import parse_number, engineering_notation
from .sources import Waveform, parse_source
from .network import Network, Node, ComponentRef, GROUND
from .components import R, C, L, VSource, ISource, Diode, NPN, PNP, NFet, PFet, OpAmp
from .circuit import Circuit
from .transient import TransientAnalysis, StepEvent
from .netlist import load_netlist, DEFAULT_FACTORIES
from .results import interpolate, sample, to_db

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    # Configuration
    "SimulationOptions",
    "T_VOLTAGE",
    "T_CURRENT",
    # Errors
    "SimulationError",
    "ShortCircuitError",
    "NewtonNonConvergence",
    "UnknownSource",
    "DimensionMismatch",
    # Numbers and waveforms
    "parse_number",
    "engineering_notation",
    "Waveform",
    "parse_source",
    # Network building
    "Network",
    "Node",
    "ComponentRef",
    "GROUND",
    "R",
    "C",
    "L",
    "VSource",
    "ISource",
    "Diode",
    "NPN",
    "PNP",
    "NFet",
    "PFet",
    "OpAmp",
    "load_netlist",
    "DEFAULT_FACTORIES",
    # Analysis
    "Circuit",
    "TransientAnalysis",
    "StepEvent",
    # Results
    "interpolate",
    "sample",
    "to_db",
    "__version__",
]
