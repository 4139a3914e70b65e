"""
JSON netlist loader.

A netlist is a list of records

    [type, coords, properties, connections]

where type is a short tag ("r", "c", "v", "npn", ...), coords is ignored,
properties is a dict of device parameters (plus an optional "name") and
connections lists the net label of each terminal in device order.
"""

from __future__ import annotations
from types import MappingProxyType
from typing import Callable, Mapping

import logging

from . import components
from .network import Network, ComponentRef, GROUND

logger = logging.getLogger(__name__)

# (net, node_indices, properties, name) -> (net, ref or None)
Factory = Callable[[Network, list, dict, str], tuple[Network, ComponentRef | None]]

# records that describe the drawing rather than devices
NON_DEVICE_TAGS = frozenset({"view", "w", "g", "s", "L"})


def _resistor(net, nodes, props, name):
    return components.R(net, nodes[0], nodes[1], name=name, value=props.get("r"))


def _capacitor(net, nodes, props, name):
    return components.C(net, nodes[0], nodes[1], name=name, value=props.get("c"))


def _inductor(net, nodes, props, name):
    return components.L(net, nodes[0], nodes[1], name=name, value=props.get("l"))


def _vsource(prop):
    def make(net, nodes, props, name):
        return components.VSource(net, nodes[0], nodes[1], name=name, value=props.get(prop))
    return make


def _current_probe(net, nodes, props, name):
    return components.VSource(net, nodes[0], nodes[1], name=name, value="0")


def _isource(net, nodes, props, name):
    return components.ISource(net, nodes[0], nodes[1], name=name, value=props.get("value"))


def _diode(net, nodes, props, name):
    return components.Diode(
        net, nodes[0], nodes[1], name=name,
        area=props.get("area", 1.0), type=props.get("type", "normal"),
    )


def _opamp(net, nodes, props, name):
    return components.OpAmp(
        net, nodes[0], nodes[1], nodes[2], name=name,
        gain=props.get("A", 30000.0), ref=nodes[3],
    )


def _bjt(factory):
    def make(net, nodes, props, name):
        return factory(
            net, nodes[0], nodes[1], nodes[2], name=name,
            area=props.get("area", 1.0),
            ics=props.get("Ics", 1e-14),
            ies=props.get("Ies", 1e-14),
            alpha_f=props.get("alphaF", 0.98),
            alpha_r=props.get("alphaR", 0.1),
        )
    return make


def _fet(factory):
    def make(net, nodes, props, name):
        return factory(net, nodes[0], nodes[1], nodes[2], name=name, wl=props.get("WL", 2.0))
    return make


def _open(net, nodes, props, name):
    # meters, lamps, motors and buzzers draw no current
    return net, None


DEFAULT_FACTORIES: Mapping[str, Factory] = MappingProxyType({
    "r": _resistor,
    "rv": _resistor,
    "f": _resistor,
    "vb": _resistor,
    "c": _capacitor,
    "l": _inductor,
    "v": _vsource("v"),
    "volt": _vsource("volt"),
    "a": _current_probe,
    "i": _isource,
    "d": _diode,
    "o": _opamp,
    "npn": _bjt(components.NPN),
    "pnp": _bjt(components.PNP),
    "n": _fet(components.NFet),
    "p": _fet(components.PFet),
    "vm": _open,
    "am": _open,
    "mo": _open,
    "so": _open,
})


def load_netlist(netlist: list, factories: Mapping[str, Factory] = DEFAULT_FACTORIES,
                 net: Network | None = None) -> Network:
    """
    Build a Network from a JSON netlist.

    Ground records ("g") make their first connection label an alias of
    ground. Records are processed from last to first, so node indices are
    assigned in that order. Devices without a name are called "_<index>".
    A new network has no ground label of its own, so a net called "gnd" is
    ground only when a "g" record names it.

    Args:
        netlist: List of [type, coords, properties, connections] records
        factories: Mapping from type tag to device factory
        net: Network to extend (a new one if None)

    Returns:
        Network holding every device of the netlist
    """
    if net is None:
        net = Network(ground_labels=())

    for record in reversed(netlist):
        if record[0] == "g":
            net, _ = net.ground(str(record[3][0]))

    found_ground = False
    for index in range(len(netlist) - 1, -1, -1):
        tag, _, properties, connections = netlist[index][:4]
        if tag in NON_DEVICE_TAGS:
            continue

        factory = factories.get(tag)
        if factory is None:
            logger.warning("skipping netlist record %d with unknown type %r", index, tag)
            continue

        properties = properties or {}
        name = properties.get("name") or f"_{properties.get('_json_', index)}"

        nodes = [None] * len(connections)
        for j in range(len(connections) - 1, -1, -1):
            net, node = net.node(str(connections[j]))
            if node.index == GROUND:
                found_ground = True
            nodes[j] = node.index

        net, _ = factory(net, nodes, properties, name)

    if not found_ground:
        logger.warning("netlist has no connection to ground, the analysis will likely fail")
    return net
