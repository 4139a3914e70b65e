"""
Test: engineering-notation number parsing and formatting.

parse_number() accepts the literals used for device values in netlists:
hex/binary/octal integers, decimals, exponents and a single scale suffix.
"""
import pytest

from pynodal.units import parse_number, engineering_notation


class TestParseNumber:

    @pytest.mark.parametrize("text, expected", [
        ("1k", 1000.0),
        ("1K", 1000.0),
        ("2.2M", 2.2e6),
        ("4.7u", 4.7e-6),
        ("10n", 10e-9),
        ("3p", 3e-12),
        ("5f", 5e-15),
        ("1m", 1e-3),
        ("1g", 1e9),
        ("1t", 1e12),
        ("-2.5", -2.5),
        ("+3", 3),
        (".5", 0.5),
        ("1e3", 1000.0),
        ("2.5E-3", 2.5e-3),
        ("  42", 42),
    ])
    def test_decimal_and_suffix(self, text, expected):
        assert parse_number(text) == pytest.approx(expected)

    def test_integer_prefixes(self):
        assert parse_number("0x1F") == 31
        assert parse_number("0b101") == 5
        assert parse_number("017") == 15
        assert parse_number("-0x10") == -16

    def test_trailing_text_ignored(self):
        assert parse_number("1kohm") == pytest.approx(1000.0)
        assert parse_number("5V") == 5

    def test_exponent_wins_over_suffix(self):
        # "1e3m" is 1e3, the m after an exponent is trailing text
        assert parse_number("1e3m") == pytest.approx(1000.0)

    def test_no_digits_returns_default(self):
        assert parse_number("abc") is None
        assert parse_number("k", 7) == 7
        assert parse_number("", 0) == 0
        assert parse_number("   ", -1) == -1
        assert parse_number(None, 3) == 3

    def test_numbers_pass_through(self):
        assert parse_number(5) == 5
        assert parse_number(2.5) == 2.5


class TestEngineeringNotation:

    def test_suffixes(self):
        assert engineering_notation(4700) == "4.7k"
        assert engineering_notation(1.5e-6) == "1.5u"
        assert engineering_notation(2e6) == "2M"
        assert engineering_notation(3.3) == "3.3"
        assert engineering_notation(-47e-9) == "-47n"

    def test_zero_and_undefined(self):
        assert engineering_notation(0) == "0"
        assert engineering_notation(1e-25) == "0"
        assert engineering_notation(None) == "undefined"

    def test_out_of_table_falls_back(self):
        assert engineering_notation(1e15) == "1e+15"

    @pytest.mark.parametrize("value", [1.0, 4.7e3, 2.2e-6, 68e-12, 330e6])
    def test_parse_back(self, value):
        assert parse_number(engineering_notation(value)) == pytest.approx(value, rel=1e-2)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
