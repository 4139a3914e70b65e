"""
Test: device models.

Checks the diode junction equation (value, derivative via jax.grad and
continuity of the overflow-safe extrapolation), and the DC behaviour of
the BJT, MOSFET and op-amp models in small circuits.
"""
import math
import pytest
import jax
import jax.numpy as jnp

from pynodal.devices import diode_eval, EXP_ARG_MAX, DIODE_VT_NORMAL


IS = 1e-14
VT = DIODE_VT_NORMAL


class TestDiodeEquation:

    def test_forward_current(self):
        i_d, g_d = diode_eval(0.6, VT, IS)
        expected = IS * (math.exp(0.6 / VT) - 1)
        assert float(i_d) == pytest.approx(expected, rel=1e-9)
        assert float(g_d) == pytest.approx(IS * math.exp(0.6 / VT) / VT, rel=1e-9)

    def test_reverse_saturates(self):
        i_d, _ = diode_eval(-5.0, VT, IS)
        assert float(i_d) == pytest.approx(-IS, rel=1e-6)

    @pytest.mark.parametrize("vd", [-3.0, -0.3, 0.1, 0.6, 1.0, 2.0, 5.0])
    def test_conductance_is_derivative(self, vd):
        """gd from the model matches jax.grad of the current."""
        current = lambda v: diode_eval(v, VT, IS)[0]
        di_dv = jax.grad(current)(vd)
        _, g_d = diode_eval(vd, VT, IS)
        assert jnp.isfinite(di_dv), f"dI/dV should be finite at {vd}"
        assert float(di_dv) == pytest.approx(float(g_d), rel=1e-6)

    def test_continuous_at_extrapolation_boundary(self):
        v_edge = EXP_ARG_MAX * VT
        below_i, below_g = diode_eval(v_edge * (1 - 1e-9), VT, IS)
        above_i, above_g = diode_eval(v_edge * (1 + 1e-9), VT, IS)
        assert float(above_i) == pytest.approx(float(below_i), rel=1e-6)
        assert float(above_g) == pytest.approx(float(below_g), rel=1e-6)

    def test_continuous_at_negative_extrapolation_boundary(self):
        v_edge = -EXP_ARG_MAX * VT
        inside_i, inside_g = diode_eval(v_edge * (1 - 1e-9), VT, IS)
        beyond_i, beyond_g = diode_eval(v_edge * (1 + 1e-9), VT, IS)
        assert float(beyond_i) == pytest.approx(float(inside_i), rel=1e-6)
        assert float(beyond_g) == pytest.approx(float(inside_g), rel=1e-6)

    def test_no_overflow(self):
        i_d, g_d = diode_eval(100.0, VT, IS)
        assert jnp.isfinite(i_d) and jnp.isfinite(g_d)
        i_d, g_d = diode_eval(-100.0, VT, IS)
        assert jnp.isfinite(i_d) and jnp.isfinite(g_d)


def _fet_circuit(factory, vd, vg):
    """Drain and gate driven by sources, source terminal grounded."""
    from pynodal import Network, VSource

    net = Network()
    net, d = net.node("d")
    net, g = net.node("g")
    net, _ = VSource(net, d, net.gnd, name="VD", value=vd)
    net, _ = VSource(net, g, net.gnd, name="VG", value=vg)
    net, _ = factory(net, d, g, net.gnd, name="M1")
    return net.compile().dc()


class TestMosfet:
    BETA = 20e-6 * 2.0
    LAMBDA = 0.05

    def test_saturation(self):
        from pynodal import NFet

        result = _fet_circuit(NFet, 5.0, 1.5)
        vgst, vds = 1.0, 5.0
        ids = 0.5 * self.BETA * (1 + self.LAMBDA * vds) * vgst ** 2
        # drain current is drawn from VD, so its branch current is negative
        assert result["I(VD)"] == pytest.approx(-ids, rel=1e-4)

    def test_triode(self):
        from pynodal import NFet

        result = _fet_circuit(NFet, 0.5, 2.5)
        vgst, vds = 2.0, 0.5
        ids = self.BETA * (1 + self.LAMBDA * vds) * vds * (vgst - 0.5 * vds)
        assert result["I(VD)"] == pytest.approx(-ids, rel=1e-4)

    def test_drain_source_swap(self):
        from pynodal import NFet

        # drain below source: the grounded terminal acts as the drain
        result = _fet_circuit(NFet, -0.5, 2.5)
        vgst, vds = 3.0 - 0.5, 0.5
        ids = self.BETA * (1 + self.LAMBDA * vds) * vds * (vgst - 0.5 * vds)
        assert result["I(VD)"] == pytest.approx(ids, rel=1e-4)

    def test_off_below_threshold(self):
        from pynodal import NFet

        result = _fet_circuit(NFet, 5.0, 0.3)
        assert abs(result["I(VD)"]) < 1e-12

    def test_pfet_mirrors_nfet(self):
        from pynodal import NFet, PFet

        n = _fet_circuit(NFet, 5.0, 1.5)
        p = _fet_circuit(PFet, -5.0, -1.5)
        assert p["I(VD)"] == pytest.approx(-n["I(VD)"], rel=1e-4)


class TestBJT:

    def _bias(self, factory, vb, vc):
        from pynodal import Network, VSource

        net = Network()
        net, b = net.node("b")
        net, c = net.node("c")
        net, _ = VSource(net, b, net.gnd, name="VB", value=vb)
        net, _ = VSource(net, c, net.gnd, name="VC", value=vc)
        net, _ = factory(net, c, b, net.gnd, name="Q1")
        return net.compile().dc()

    def test_forward_active_npn(self):
        from pynodal import NPN

        result = self._bias(NPN, 0.65, 5.0)
        i_f = 1e-14 * (math.exp(0.65 / 0.026) - 1)
        assert result["I(VC)"] == pytest.approx(-0.98 * i_f, rel=1e-3)
        # beta = alphaF / (1 - alphaF) = 49
        assert result["I(VC)"] / result["I(VB)"] == pytest.approx(49.0, rel=1e-3)

    def test_pnp_mirrors_npn(self):
        from pynodal import NPN, PNP

        n = self._bias(NPN, 0.65, 5.0)
        p = self._bias(PNP, -0.65, -5.0)
        assert p["I(VC)"] == pytest.approx(-n["I(VC)"], rel=1e-4)
        assert p["I(VB)"] == pytest.approx(-n["I(VB)"], rel=1e-4)


class TestOpAmp:

    def test_inverting_gain(self):
        from pynodal import Network, R, VSource, OpAmp

        net = Network()
        net, vin = net.node("in")
        net, inn = net.node("inn")
        net, out = net.node("out")
        net, _ = VSource(net, vin, net.gnd, name="V1", value=1.0)
        net, _ = R(net, vin, inn, name="R1", value="1k")
        net, _ = R(net, inn, out, name="RF", value="2k")
        net, _ = OpAmp(net, net.gnd, inn, out, name="U1")

        result = net.compile().dc()
        assert result["out"] == pytest.approx(-2.0, rel=1e-3)
        assert abs(result["inn"]) < 1e-3

    def test_follower_with_finite_gain(self):
        from pynodal import Network, R, VSource, OpAmp

        net = Network()
        net, vin = net.node("in")
        net, out = net.node("out")
        net, _ = VSource(net, vin, net.gnd, name="V1", value=1.0)
        net, _ = OpAmp(net, vin, out, out, name="U1", gain=100)
        net, _ = R(net, out, net.gnd, name="RL", value="10k")

        result = net.compile().dc()
        assert result["out"] == pytest.approx(100 / 101, rel=1e-6)


class TestPassives:

    def test_inductor_is_dc_short(self):
        from pynodal import Network, R, L, VSource

        net = Network()
        net, n1 = net.node("n1")
        net, n2 = net.node("n2")
        net, _ = VSource(net, n1, net.gnd, name="V1", value=1.0)
        net, _ = R(net, n1, n2, name="R1", value="1k")
        net, _ = L(net, n2, net.gnd, name="L1", value="10m")

        result = net.compile().dc()
        assert abs(result["n2"]) < 1e-9
        assert result["I(V1)"] == pytest.approx(-1e-3, rel=1e-6)

    def test_capacitor_is_dc_open(self):
        from pynodal import Network, R, C, VSource

        net = Network()
        net, n1 = net.node("n1")
        net, n2 = net.node("n2")
        net, _ = VSource(net, n1, net.gnd, name="V1", value=3.0)
        net, _ = R(net, n1, n2, name="R1", value="1k")
        net, _ = C(net, n2, net.gnd, name="C1", value="1u")
        net, _ = R(net, n2, net.gnd, name="R2", value="2k")

        result = net.compile().dc()
        assert result["n2"] == pytest.approx(2.0, rel=1e-6)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
