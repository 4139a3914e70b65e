"""Engineering-notation numeric literals.

Device parameters arrive as strings such as "1k", "4.7u" or "0x1F".
parse_number() turns them into numbers and engineering_notation() formats
numbers back with the same suffixes.
"""

from __future__ import annotations

import math
import re

SCALE_FACTORS = {
    "t": 1e12, "T": 1e12,
    "g": 1e9, "G": 1e9,
    "M": 1e6,
    "k": 1e3, "K": 1e3,
    "m": 1e-3,
    "u": 1e-6, "U": 1e-6,
    "n": 1e-9, "N": 1e-9,
    "p": 1e-12, "P": 1e-12,
    "f": 1e-15, "F": 1e-15,
}

_SUFFIXES = {-5: "f", -4: "p", -3: "n", -2: "u", -1: "m", 0: "", 1: "k", 2: "M", 3: "G"}

_HEX = re.compile(r"[0-9a-fA-F]*")
_BIN = re.compile(r"[01]*")
_OCT = re.compile(r"[0-7]*")
_DECIMAL = re.compile(r"(\d*)(?:\.(\d*))?")
_EXPONENT = re.compile(r"[eE]([+-]?)(\d*)")


def parse_number(s, default=None):
    """
    Convert a string to a number, accepting the usual notations.

    Hex (0x1f), binary (0b101) and octal (017) integers, decimals and
    floats with an e/E exponent, or a single engineering scale factor
    (1k = 1000.0). Characters after the number are ignored, so "1kohm"
    gives 1000.0.

    Args:
        s: Text to parse (numbers are returned unchanged)
        default: Returned when s holds no digits

    Returns:
        int or float, or default
    """
    if isinstance(s, (int, float)) and not isinstance(s, bool):
        return s
    if not isinstance(s, str):
        return default

    # anything up to and including the space character counts as blank
    index = 0
    while index < len(s) and s[index] <= " ":
        index += 1
    s = s[index:]
    if not s:
        return default

    sign = 1
    if s[0] in "+-":
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if not s:
        return default

    if s[0] == "0" and len(s) > 1 and s[1] != ".":
        prefix = s[1]
        if prefix in "xX":
            digits = _HEX.match(s, 2).group()
            return sign * int(digits, 16) if digits else 0
        if prefix in "bB":
            digits = _BIN.match(s, 2).group()
            return sign * int(digits, 2) if digits else 0
        digits = _OCT.match(s, 1).group()
        return sign * int(digits, 8) if digits else 0

    match = _DECIMAL.match(s)
    if match.end() == 0:
        return default
    whole, frac = match.group(1), match.group(2)
    mantissa = f"{whole or '0'}.{frac or '0'}" if frac is not None else (whole or "0")
    index = match.end()

    exponent = _EXPONENT.match(s, index)
    if exponent:
        result = float(f"{mantissa}e{exponent.group(1)}{exponent.group(2) or '0'}")
    elif frac is not None:
        result = float(mantissa)
    else:
        result = int(mantissa)
        if index < len(s) and s[index] in SCALE_FACTORS:
            result = float(result)

    if not exponent and index < len(s) and s[index] in SCALE_FACTORS:
        result *= SCALE_FACTORS[s[index]]
    return sign * result


def engineering_notation(n, nplaces: int = 2, trim: bool = True) -> str:
    """
    Format a number with an engineering suffix.

    Example:
        engineering_notation(4700)     # "4.7k"
        engineering_notation(1.5e-6)   # "1.5u"
    """
    if n is None:
        return "undefined"
    if n == 0 or abs(n) < 1e-20:
        return "0"

    sign = -1 if n < 0 else 1
    log10 = math.log10(sign * n)
    exp = math.floor(log10 / 3)  # powers of 1000
    mantissa = sign * 10 ** (log10 - 3 * exp)

    # round to nplaces following the decimal point
    mstring = repr(mantissa + sign * 0.5 * 10 ** -nplaces)
    end = mstring.find(".")
    if end != -1:
        if nplaces > 0:
            end = min(end + nplaces + 1, len(mstring))
            if trim:
                while mstring[end - 1] == "0":
                    end -= 1
                if mstring[end - 1] == ".":
                    end -= 1
        mstring = mstring[:end]

    if exp in _SUFFIXES:
        return mstring + _SUFFIXES[exp]
    return f"{n:.4g}"
