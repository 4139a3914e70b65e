"""Circuit component factory functions (functional style)."""

from __future__ import annotations

from .devices import (
    BJT, Capacitor, CurrentSource, Diode as DiodeModel, Inductor, Mosfet,
    OpAmp as OpAmpModel, Resistor, VoltageSource,
    DIODE_IS, DIODE_VT_IDEAL, DIODE_VT_NORMAL,
)
from .network import Network, Node, ComponentRef
from .sources import parse_source
from .units import parse_number


def _index(node: Node | int) -> int:
    return node if isinstance(node, int) else node.index


def _value(value, name: str, what: str, default=None) -> float:
    """Parse a device parameter, raising ValueError when it is not a number."""
    if value is None:
        value = default
    result = parse_number(value, None)
    if result is None:
        raise ValueError(f"{name}: cannot parse {what} {value!r}")
    return float(result)


def R(
    net: Network,
    node_a: Node,
    node_b: Node,
    *,
    name: str,
    value: float | str = 1.0,
) -> tuple[Network, ComponentRef]:
    """
    Create a resistor.

    A zero resistance is modelled as a 0 V voltage source, which keeps the
    matrix free of infinite conductances.

    Args:
        net: Network to add to
        node_a: First terminal
        node_b: Second terminal
        name: Component name
        value: Resistance in Ohms, number or string like "4.7k"

    Returns:
        (new_network, component_ref)

    Example:
        net, r1 = R(net, n1, n2, name="R1", value="1k")
    """
    r = _value(value, name, "resistance")
    if r == 0:
        return VSource(net, node_a, node_b, name=name, value="0")
    return net.add_device(Resistor(name, _index(node_a), _index(node_b), 1.0 / r))


def C(
    net: Network,
    node_a: Node,
    node_b: Node,
    *,
    name: str,
    value: float | str = 1e-6,
) -> tuple[Network, ComponentRef]:
    """
    Create a capacitor.

    Args:
        net: Network to add to
        node_a: First terminal (positive for voltage reference)
        node_b: Second terminal
        name: Component name
        value: Capacitance in Farads

    Returns:
        (new_network, component_ref)

    Example:
        net, c1 = C(net, n1, gnd, name="C1", value="1u")
    """
    c = _value(value, name, "capacitance")
    return net.add_device(Capacitor(name, _index(node_a), _index(node_b), c))


def L(
    net: Network,
    node_a: Node,
    node_b: Node,
    *,
    name: str,
    value: float | str = 1e-3,
) -> tuple[Network, ComponentRef]:
    """
    Create an inductor.

    Args:
        net: Network to add to
        node_a: First terminal
        node_b: Second terminal
        name: Component name
        value: Inductance in Henrys

    Returns:
        (new_network, component_ref)

    Example:
        net, l1 = L(net, n1, n2, name="L1", value="1m")
    """
    inductance = _value(value, name, "inductance")
    net, branch = net.branch()  # inductor current
    return net.add_device(
        Inductor(name, _index(node_a), _index(node_b), branch.index, inductance)
    )


def VSource(
    net: Network,
    node_p: Node,
    node_n: Node,
    *,
    name: str,
    value: float | str = 0.0,
) -> tuple[Network, ComponentRef]:
    """
    Create a voltage source.

    Args:
        net: Network to add to
        node_p: Positive terminal
        node_n: Negative terminal
        name: Component name, also the AC source name and I(name) label
        value: DC value or waveform, e.g. "sin(0,1,1k)" or "pulse(0,5,1m)"

    Returns:
        (new_network, component_ref)

    Example:
        net, vs = VSource(net, n1, gnd, name="V1", value="step(0,5,1m)")
    """
    src = parse_source(value)
    net, branch = net.branch()  # source current
    return net.add_device(
        VoltageSource(name, _index(node_p), _index(node_n), branch.index, src)
    )


def ISource(
    net: Network,
    node_p: Node,
    node_n: Node,
    *,
    name: str,
    value: float | str = 0.0,
) -> tuple[Network, ComponentRef]:
    """
    Create a current source.

    Current flows into node_p, through the source, and out of node_n.

    Example:
        net, i1 = ISource(net, n1, gnd, name="I1", value="1m")
    """
    src = parse_source(value)
    return net.add_device(CurrentSource(name, _index(node_p), _index(node_n), src))


def Diode(
    net: Network,
    anode: Node,
    cathode: Node,
    *,
    name: str,
    area: float | str = 1.0,
    type: str = "normal",
) -> tuple[Network, ComponentRef | None]:
    """
    Create a diode.

    type "normal" uses Vt = 25.8 mV, any other type an almost ideal
    switch with Vt = 0.1 mV. A diode with zero area is discarded and
    (net, None) is returned.

    Example:
        net, d1 = Diode(net, n1, n2, name="D1")
    """
    area = _value(area, name, "area")
    if area == 0:
        return net, None
    vt = DIODE_VT_NORMAL if type == "normal" else DIODE_VT_IDEAL
    return net.add_device(
        DiodeModel(name, _index(anode), _index(cathode), area, type, vt, area * DIODE_IS)
    )


def _bjt(net, collector, base, emitter, name, type_sign, area, ics, ies, alpha_f, alpha_r):
    area = _value(area, name, "area")
    device = BJT(
        name,
        _index(collector),
        _index(base),
        _index(emitter),
        area=area,
        a_ics=area * _value(ics, name, "Ics"),
        a_ies=area * _value(ies, name, "Ies"),
        alpha_f=_value(alpha_f, name, "alphaF"),
        alpha_r=_value(alpha_r, name, "alphaR"),
        type_sign=type_sign,
    )
    return net.add_device(device)


def NPN(
    net: Network,
    collector: Node,
    base: Node,
    emitter: Node,
    *,
    name: str,
    area: float | str = 1.0,
    ics: float | str = 1e-14,
    ies: float | str = 1e-14,
    alpha_f: float | str = 0.98,
    alpha_r: float | str = 0.1,
) -> tuple[Network, ComponentRef]:
    """
    Create an NPN bipolar transistor (Ebers-Moll).

    Args:
        net: Network to add to
        collector, base, emitter: Terminals
        name: Component name
        area: Junction area, scales ics and ies
        ics, ies: Collector and emitter saturation currents
        alpha_f, alpha_r: Forward and reverse common-base current gains

    Returns:
        (new_network, component_ref)
    """
    return _bjt(net, collector, base, emitter, name, 1, area, ics, ies, alpha_f, alpha_r)


def PNP(
    net: Network,
    collector: Node,
    base: Node,
    emitter: Node,
    *,
    name: str,
    area: float | str = 1.0,
    ics: float | str = 1e-14,
    ies: float | str = 1e-14,
    alpha_f: float | str = 0.98,
    alpha_r: float | str = 0.1,
) -> tuple[Network, ComponentRef]:
    """Create a PNP bipolar transistor. Same parameters as NPN."""
    return _bjt(net, collector, base, emitter, name, -1, area, ics, ies, alpha_f, alpha_r)


def NFet(
    net: Network,
    drain: Node,
    gate: Node,
    source: Node,
    *,
    name: str,
    wl: float | str = 2.0,
) -> tuple[Network, ComponentRef]:
    """
    Create an n-channel MOSFET.

    Args:
        net: Network to add to
        drain, gate, source: Terminals
        name: Component name
        wl: Width over length ratio, beta = 20e-6 * wl

    Returns:
        (new_network, component_ref)
    """
    ratio = _value(wl, name, "W/L")
    return net.add_device(Mosfet(name, _index(drain), _index(gate), _index(source), ratio, 1))


def PFet(
    net: Network,
    drain: Node,
    gate: Node,
    source: Node,
    *,
    name: str,
    wl: float | str = 2.0,
) -> tuple[Network, ComponentRef]:
    """Create a p-channel MOSFET. Same parameters as NFet."""
    ratio = _value(wl, name, "W/L")
    return net.add_device(Mosfet(name, _index(drain), _index(gate), _index(source), ratio, -1))


def OpAmp(
    net: Network,
    in_p: Node,
    in_n: Node,
    out: Node,
    *,
    name: str,
    gain: float | str = 30000.0,
    ref: Node | None = None,
) -> tuple[Network, ComponentRef]:
    """
    Create an op-amp with finite open-loop gain.

    The output voltage, measured against ref (ground by default), is
    gain * (v(in_p) - v(in_n)).

    Example:
        net, u1 = OpAmp(net, inp, inn, out, name="U1", gain="100k")
    """
    gain = _value(gain, name, "gain")
    if gain == 0:
        raise ValueError(f"{name}: op-amp gain must be nonzero")
    ref = net.gnd if ref is None else ref
    net, branch = net.branch()  # output current
    device = OpAmpModel(
        name, _index(in_p), _index(in_n), _index(out), _index(ref), branch.index, gain
    )
    return net.add_device(device)
