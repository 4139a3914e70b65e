"""Independent source waveforms.

A waveform is described by a string, either a bare number (a DC value) or
a function call:

    dc(v)
    step(v_init, v_plateau, t_delay, t_rise)
    square(v_init, v_plateau, freq, duty_cycle)
    triangle(v_init, v_plateau, freq)
    pulse(v_init, v_plateau, t_delay, t_rise, t_fall, t_width, t_period)
    sin(v_offset, v_amplitude, freq_hz, t_delay, phase_offset_degrees)
    impulse(height, width)
    pwl(t1, v1, t2, v2, ...)
    pwl_repeating(t1, v1, t2, v2, ...)

Every shape except dc and sin is normalized to a piecewise-linear table.
"""

from __future__ import annotations
from typing import NamedTuple

import math

from .units import parse_number


class Waveform(NamedTuple):
    """
    Parsed source waveform (immutable).

    value(t) evaluates the waveform, inflection_point(t) returns the next
    time after t where the slope changes (None if smooth from t on).
    """
    fun: str
    args: tuple[float, ...]
    table: tuple[float, ...] = ()   # t0, v0, t1, v1, ... for pwl shapes
    repeat: bool = False
    period: float = 0.0             # 0 = not periodic
    dc: float = 0.0                 # value at t = 0

    def value(self, t: float) -> float:
        if self.fun == "dc":
            return self.args[0]
        if self.fun == "sin":
            voffset, va, freq, td, phase = self.args
            phase /= 360.0
            if t < td:
                return voffset + va * math.sin(2 * math.pi * phase)
            return voffset + va * math.sin(2 * math.pi * (freq * (t - td) + phase))
        return _pwl_value(self.table, self._reduce(t))

    def inflection_point(self, t: float) -> float | None:
        if self.fun == "sin":
            td = self.args[3]
            return td if t < td else None
        table = self.table
        if len(table) <= 2:
            return None
        t_mod = self._reduce(t)
        for next_t in table[0::2]:
            if t_mod < next_t:
                return t - t_mod + next_t
        if self._repeats():
            # first breakpoint of the next period
            return t - t_mod + self.period + table[0]
        return None

    def _repeats(self) -> bool:
        return self.repeat and 0 < self.period < math.inf

    def _reduce(self, t: float) -> float:
        if self._repeats():
            return t % self.period
        return t


def _pwl_value(table: tuple[float, ...], t: float) -> float:
    if len(table) < 2:
        return 0.0
    if len(table) == 2:
        return table[1]
    last_t, last_v = table[0], table[1]
    if t > last_t:
        for i in range(2, len(table), 2):
            next_t, next_v = table[i], table[i + 1]
            # skip bogus pairs that go back in time
            if next_t > last_t:
                if t < next_t:
                    return last_v + (next_v - last_v) * (t - last_t) / (next_t - last_t)
                last_t, last_v = next_t, next_v
    return last_v


def _arg_value(args: list, index: int, default: float) -> float:
    """Return args[index] if present and parsed, else default."""
    if index < len(args) and args[index] is not None:
        return args[index]
    return default


def _pwl(fun: str, args: tuple, tv_pairs: list, repeat: bool) -> Waveform:
    if len(tv_pairs) % 2 == 1:
        tv_pairs = tv_pairs[:-1]
    table = tuple(float(x) for x in tv_pairs)
    period = table[-2] if repeat and table else 0.0
    wave = Waveform(fun=fun, args=tuple(args), table=table, repeat=repeat, period=period)
    return wave._replace(dc=wave.value(0.0))


def parse_source(v) -> Waveform:
    """
    Parse a source description into a Waveform.

    Args:
        v: Bare number ("5", "1.2k", 3.3) or "fun(arg, ...)"

    Returns:
        Waveform

    Example:
        src = parse_source("pulse(0,5,1m,1u,1u,2m,4m)")
        src.value(1.5e-3)   # 5.0
    """
    if not isinstance(v, str):
        v = "" if v is None else repr(v)

    index = v.find("(")
    if index >= 0:
        fun = v[:index].strip()
        end = v.find(")", index)
        if end == -1:
            end = len(v)
        # empty slots stay in place as None so later arguments keep their position
        args = [parse_number(arg, None) for arg in v[index + 1:end].split(",")]
    else:
        fun = "dc"
        args = [parse_number(v, 0)]

    if fun == "dc":
        value = _arg_value(args, 0, 0)
        return Waveform(fun="dc", args=(value,), dc=value)

    if fun == "impulse":
        h = _arg_value(args, 0, 1)              # default height: 1
        w = abs(_arg_value(args, 1, 1e-9))      # default width: 1ns
        return _pwl(fun, (h, w), [0, 0, w / 2, h, w, 0], repeat=False)

    if fun == "step":
        v1 = _arg_value(args, 0, 0)             # default init value: 0V
        v2 = _arg_value(args, 1, 1)             # default plateau value: 1V
        td = max(0, _arg_value(args, 2, 0))     # time step starts
        tr = abs(_arg_value(args, 3, 1e-9))     # default rise time: 1ns
        return _pwl(fun, (v1, v2, td, tr), [td, v1, td + tr, v2], repeat=False)

    if fun == "square":
        v1 = _arg_value(args, 0, 0)
        v2 = _arg_value(args, 1, 1)
        freq = abs(_arg_value(args, 2, 1))      # default frequency: 1Hz
        duty_cycle = min(100, abs(_arg_value(args, 3, 50)))
        per = math.inf if freq == 0 else 1 / freq
        t_change = 0.01 * per                   # rise and fall time
        t_pw = 0.01 * duty_cycle * 0.98 * per   # plateau minus rise and fall
        table = [0, v1, t_change, v2, t_change + t_pw, v2,
                 t_change + t_pw + t_change, v1, per, v1]
        return _pwl(fun, (v1, v2, freq, duty_cycle), table, repeat=True)

    if fun == "triangle":
        v1 = _arg_value(args, 0, 0)
        v2 = _arg_value(args, 1, 1)
        freq = abs(_arg_value(args, 2, 1))
        per = math.inf if freq == 0 else 1 / freq
        return _pwl(fun, (v1, v2, freq), [0, v1, per / 2, v2, per, v1], repeat=True)

    if fun in ("pwl", "pwl_repeating"):
        tv_pairs = [_arg_value(args, i, 0) for i in range(len(args))]
        return _pwl(fun, tuple(tv_pairs), tv_pairs, repeat=fun == "pwl_repeating")

    if fun == "pulse":
        v1 = _arg_value(args, 0, 0)
        v2 = _arg_value(args, 1, 1)
        td = max(0, _arg_value(args, 2, 0))     # time pulse starts
        tr = abs(_arg_value(args, 3, 1e-9))
        tf = abs(_arg_value(args, 4, 1e-9))
        pw = abs(_arg_value(args, 5, 1e9))      # default pulse width: "infinite"
        per = abs(_arg_value(args, 6, 1e9))     # default period: "infinite"
        t1 = td          # v1 -> v2 transition starts
        t2 = t1 + tr     # v1 -> v2 transition ends
        t3 = t2 + pw     # v2 -> v1 transition starts
        t4 = t3 + tf     # v2 -> v1 transition ends
        table = [t1, v1, t2, v2, t3, v2, t4, v1, per, v1]
        return _pwl(fun, (v1, v2, td, tr, tf, pw, per), table, repeat=True)

    if fun == "sin":
        voffset = _arg_value(args, 0, 0)        # default offset voltage: 0V
        va = _arg_value(args, 1, 1)             # default amplitude: -1V to 1V
        freq = abs(_arg_value(args, 2, 1))      # default frequency: 1Hz
        td = max(0, _arg_value(args, 3, 0))     # default time delay: 0sec
        phase = _arg_value(args, 4, 0)          # default phase offset: 0 degrees
        wave = Waveform(fun="sin", args=(voffset, va, freq, td, phase),
                        period=1.0 / freq if freq else 0.0)
        return wave._replace(dc=wave.value(0.0))

    # unknown function: a source that stays at zero
    return Waveform(fun=fun, args=tuple(args))
