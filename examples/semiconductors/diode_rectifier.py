"""
Example: Half-Wave Rectifier

A 50 Hz sine drives a diode into an RC load. The diode conducts only
near the positive peaks, the capacitor holds the voltage in between.

Ripple is roughly I_load / (f * C).

Components used: VSource, Diode, R, C
"""
from pynodal import Network, R, C, Diode, VSource, TransientAnalysis
from pynodal.transient import ACCEPT, LTE_REJECT, NEWTON_FAIL


def build_rectifier():
    """
    Circuit:
        Vs ---|>|---+------+
                    |      |
                   [C]    [R]
                    |      |
                   GND    GND
    """
    net = Network()
    net, n_in = net.node("in")
    net, n_out = net.node("out")

    net, _ = VSource(net, n_in, net.gnd, name="vs", value="sin(0,10,50)")
    net, _ = Diode(net, n_in, n_out, name="D1")
    net, _ = C(net, n_out, net.gnd, name="C1", value="100u")
    net, _ = R(net, n_out, net.gnd, name="RL", value="1k")
    return net


def main():
    print("=" * 60)
    print("Half-Wave Rectifier Example")
    print("=" * 60)

    tran = TransientAnalysis(build_rectifier().compile(), probe_names=("out",))
    result = tran.run(100, 0.0, 0.1)

    out = result["out"]
    settled = out[out.shape[0] // 2:]
    print(f"\n   Time points:     {result['_time_'].shape[0]}")
    print(f"   Peak output:     {float(settled.max()):.3f} V")
    print(f"   Ripple:          {float(settled.max() - settled.min()):.3f} V")

    counts = {kind: 0 for kind in (ACCEPT, LTE_REJECT, NEWTON_FAIL)}
    for event in tran.step_log:
        counts[event.kind] += 1
    print("\n   Step controller:")
    for kind, n in counts.items():
        print(f"     {kind:12s} {n}")

    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
