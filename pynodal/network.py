"""Network and Node classes for circuit topology (immutable/functional style)."""

from __future__ import annotations
from typing import NamedTuple, TYPE_CHECKING

import logging

from .options import T_VOLTAGE, T_CURRENT

if TYPE_CHECKING:
    from .circuit import Circuit
    from .devices import Device
    from .options import SimulationOptions

logger = logging.getLogger(__name__)

GROUND = -1


class Node(NamedTuple):
    """A node in the circuit (electrical connection point or branch current)."""
    name: str | None
    index: int  # row in the MNA matrix (-1 = ground)
    kind: int = T_VOLTAGE
    ic: float | None = None  # initial condition, used when DC is skipped


class ComponentRef(NamedTuple):
    """Reference to a device for later lookups."""
    name: str
    kind: str  # "R", "C", "L", "VSource", etc.


class Network(NamedTuple):
    """
    Immutable circuit network topology.

    Build using functional style:
        net = Network()
        net, n1 = net.node("n1")
        net, r1 = R(net, n1, net.gnd, name="R1", value="1k")
        circuit = net.compile()
    """
    nodes: tuple[Node, ...] = ()           # non-ground nodes, nodes[i].index == i
    ground_labels: tuple[str, ...] = ("gnd",)
    devices: tuple[Device, ...] = ()

    @property
    def gnd(self) -> Node:
        """Ground node (reference, always 0V)."""
        return Node(self.ground_labels[0] if self.ground_labels else None, GROUND)

    @property
    def num_nodes(self) -> int:
        """Number of unknowns (node voltages plus branch currents)."""
        return len(self.nodes)

    @property
    def node_map(self) -> dict[str, int]:
        """Mapping from net label to node index (ground labels map to -1)."""
        mapping = {label: GROUND for label in self.ground_labels}
        for n in self.nodes:
            if n.name is not None:
                mapping[n.name] = n.index
        return mapping

    def node(self, name: str | None = None, kind: int = T_VOLTAGE,
             ic: float | None = None) -> tuple[Network, Node]:
        """
        Get or create a node.

        Unnamed nodes are always new (branch currents use these).
        Returns (new_network, node).
        """
        if name is not None:
            if name in self.ground_labels:
                return self, Node(name, GROUND)
            for n in self.nodes:
                if n.name == name:
                    return self, n

        new_node = Node(name, len(self.nodes), kind, ic)
        new_net = self._replace(nodes=self.nodes + (new_node,))
        return new_net, new_node

    def branch(self) -> tuple[Network, Node]:
        """Allocate a current-type unknown for a device branch."""
        return self.node(None, T_CURRENT)

    def ground(self, label: str) -> tuple[Network, Node]:
        """
        Make label an alias of the ground node.

        Returns (new_network, ground_node).
        """
        if label in self.ground_labels:
            return self, Node(label, GROUND)
        for n in self.nodes:
            if n.name == label:
                raise ValueError(f"Net {label!r} is already node {n.index}, cannot ground it")
        return self._replace(ground_labels=self.ground_labels + (label,)), Node(label, GROUND)

    def device(self, name: str) -> Device | None:
        """Look up a device by name (the last one added wins)."""
        for d in reversed(self.devices):
            if d.name == name:
                return d
        return None

    def add_device(self, device: Device) -> tuple[Network, ComponentRef]:
        """
        Add a device.

        Returns (new_network, component_ref).
        """
        if device.name and self.device(device.name) is not None:
            logger.warning("two circuit elements share the same name %s", device.name)
        new_net = self._replace(devices=self.devices + (device,))
        return new_net, ComponentRef(device.name, device.kind)

    def compile(self, options: SimulationOptions | None = None) -> Circuit:
        """
        Create the analysis object for this network.

        Args:
            options: Tolerances and iteration limits (defaults if None)

        Returns:
            Circuit with dc, ac and tran analyses
        """
        from .circuit import Circuit
        return Circuit(self, options)
