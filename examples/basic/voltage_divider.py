"""
Example: Voltage Divider

Demonstrates the voltage divider rule: V_out = V_in * R2 / (R1 + R2)

Two examples:
1. Simple 2-resistor divider built with the Python API
2. 4-resistor divider chain loaded from a JSON netlist

Components used: R, VSource
"""
from pynodal import Network, R, VSource, load_netlist


def build_simple_divider(V_in=10.0, R1="10k", R2="10k"):
    """Build a simple 2-resistor voltage divider.

    Circuit:
        Vs ---[R1]---+---[R2]--- GND
                     |
                    Vout
    """
    net = Network()
    net, n_top = net.node("top")
    net, n_mid = net.node("mid")

    net, _ = VSource(net, n_top, net.gnd, name="vs", value=V_in)
    net, _ = R(net, n_top, n_mid, name="R1", value=R1)
    net, _ = R(net, n_mid, net.gnd, name="R2", value=R2)
    return net


CHAIN_NETLIST = [
    ["g", [0, 0], {}, ["0"]],
    ["v", [0, 0], {"name": "vs", "v": "10"}, ["top", "0"]],
    ["r", [0, 0], {"name": "R1", "r": "10k"}, ["top", "tap1"]],
    ["r", [0, 0], {"name": "R2", "r": "10k"}, ["tap1", "tap2"]],
    ["r", [0, 0], {"name": "R3", "r": "10k"}, ["tap2", "tap3"]],
    ["r", [0, 0], {"name": "R4", "r": "10k"}, ["tap3", "0"]],
]


def main():
    print("=" * 60)
    print("Voltage Divider Example")
    print("=" * 60)

    V_in = 10.0
    print("\n1. Simple Voltage Divider (R1 = R2 = 10k)")
    print("-" * 40)
    result = build_simple_divider(V_in).compile().dc()
    print(f"   Input voltage:    {result['top']:.2f} V")
    print(f"   Output voltage:   {result['mid']:.4f} V")
    print(f"   Source current:   {-result['I(vs)'] * 1e3:.4f} mA")

    print("\n2. Unequal Resistors (R1=10k, R2=20k)")
    print("-" * 40)
    result = build_simple_divider(V_in, R2="20k").compile().dc()
    print(f"   Output voltage:   {result['mid']:.4f} V")
    print(f"   Expected (2/3):   {V_in * 2 / 3:.4f} V")

    print("\n3. 4-Resistor Chain from a netlist")
    print("-" * 40)
    taps = load_netlist(CHAIN_NETLIST).compile().dc()
    for name, fraction in [("tap1", 0.75), ("tap2", 0.50), ("tap3", 0.25)]:
        print(f"   {name}: {taps[name]:.4f} V (expected: {V_in * fraction:.2f})")

    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
