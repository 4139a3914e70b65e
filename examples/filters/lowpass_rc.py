"""
Example: RC Low-Pass Filter

Demonstrates first-order RC low-pass filter behavior:
- Cutoff frequency: f_c = 1 / (2 * pi * R * C)
- At f_c: output is -3dB (0.707x) and phase is -45 degrees
- Time constant: tau = R * C

Components used: R, C, VSource
"""
import math
from pynodal import Network, R, C, VSource, sample, to_db


def build_lowpass_filter(source="0"):
    """Build RC low-pass filter.

    Circuit:
        Vin ---[R]---+--- Vout
                     |
                    [C]
                     |
                    GND
    """
    net = Network()
    net, n_in = net.node("in")
    net, n_out = net.node("out")

    net, _ = VSource(net, n_in, net.gnd, name="vs", value=source)
    net, _ = R(net, n_in, n_out, name="R1", value="1k")
    net, _ = C(net, n_out, net.gnd, name="C1", value="1u")
    return net


def main():
    print("=" * 60)
    print("RC Low-Pass Filter Example")
    print("=" * 60)

    tau = 1e3 * 1e-6
    f_c = 1 / (2 * math.pi * tau)
    print(f"\n   tau = R*C = {tau*1000:.3f} ms")
    print(f"   f_c = 1/(2*pi*tau) = {f_c:.1f} Hz")

    # Step response: 5 V step at t = 0.5 ms
    print("\n1. Step Response")
    print("-" * 40)
    circuit = build_lowpass_filter("step(0,5,0.5m,1u)").compile()
    result = circuit.tran(100, 0.0, 6e-3, probe_names=("out",))
    print(f"   {result['_time_'].shape[0]} time points")
    points = [0.5e-3 + n * tau for n in (1, 2, 3, 5)]
    for n, (t, v) in zip((1, 2, 3, 5), sample(result, "out", points)):
        expected = 5.0 * (1 - math.exp(-n))
        print(f"   At t={n}*tau: V_out = {v:.4f} V (expected: {expected:.4f} V)")

    # Small-signal sweep
    print("\n2. Frequency Response")
    print("-" * 40)
    result = build_lowpass_filter().compile().ac(5, 10.0, 1e4, "vs")
    db = to_db(result["out"])
    print(f"   {'Freq':>10s}  {'dB':>8s}  {'phase':>8s}  {'Expected dB':>12s}")
    for k in range(0, result["_frequencies_"].shape[0], 3):
        freq = 10.0 ** float(result["_frequencies_"][k])
        expected_db = -10 * math.log10(1 + (freq / f_c) ** 2)
        print(f"   {freq:10.1f}  {float(db[k]):8.2f}  {float(result['out_phase'][k]):8.1f}"
              f"  {expected_db:12.2f}")

    print("\n" + "=" * 60)


if __name__ == "__main__":
    main()
