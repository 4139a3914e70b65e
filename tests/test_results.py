"""
Test: result table helpers.
"""
import pytest
import jax.numpy as jnp

from pynodal.results import interpolate, sample, to_db


class TestInterpolate:

    def test_between_points(self):
        assert interpolate(1.5, [0.0, 1.0, 2.0], [0.0, 10.0, 30.0]) == pytest.approx(20.0)

    def test_on_a_point(self):
        assert interpolate(1.0, [0.0, 1.0, 2.0], [0.0, 10.0, 30.0]) == pytest.approx(10.0)

    def test_before_start_is_first_value(self):
        assert interpolate(-1.0, [0.0, 1.0], [5.0, 6.0]) == 5.0

    def test_last_sample(self):
        assert interpolate(1.0, [0.0, 1.0], [5.0, 6.0]) == 6.0

    def test_past_end_is_none(self):
        assert interpolate(3.0, [0.0, 1.0], [5.0, 6.0]) is None

    def test_missing_trace(self):
        assert interpolate(0.5, [0.0, 1.0], None) is None


def test_sample():
    result = {"_time_": jnp.array([0.0, 1.0, 2.0]), "out": jnp.array([0.0, 2.0, 4.0])}
    points = sample(result, "out", [0.5, 1.5, 9.0])
    assert points[0] == (0.5, pytest.approx(1.0))
    assert points[1] == (1.5, pytest.approx(3.0))
    assert points[2] == (9.0, None)


def test_sample_frequency_axis():
    result = {"_frequencies_": jnp.array([0.0, 1.0]), "out": jnp.array([1.0, 0.5])}
    assert sample(result, "out", [0.5], axis="_frequencies_")[0][1] == pytest.approx(0.75)


def test_to_db():
    assert to_db(jnp.array([1.0, 10.0, 0.1])).tolist() == pytest.approx([0.0, 20.0, -20.0])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
