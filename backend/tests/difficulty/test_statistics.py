import pytest

from difficulty.services.statistics import clamp, clamp01, linear_slope, mean, mean_step, std, variance


def test_clamp_bounds() -> None:
    assert clamp(12.0, 0.0, 10.0) == 10.0
    assert clamp(-1.0, 0.0, 10.0) == 0.0
    assert clamp01(0.4) == 0.4
    assert clamp01(1.7) == 1.0


def test_empty_sequences_use_defaults() -> None:
    assert mean([], default=0.5) == 0.5
    assert variance([]) == 0.0
    assert std([]) == 0.0
    assert linear_slope([3.0]) == 0.0
    assert mean_step([1.0]) == 0.0


def test_slope_and_step_on_linear_series() -> None:
    values = [1.0, 2.0, 3.0, 4.0]
    assert linear_slope(values) == pytest.approx(1.0)
    assert mean_step(values) == pytest.approx(1.0)
    assert mean_step([0.9, 0.8, 0.6]) == pytest.approx(-0.15)


def test_population_variance() -> None:
    assert variance([1.0, 3.0]) == pytest.approx(1.0)
    assert std([1.0, 3.0]) == pytest.approx(1.0)
    assert mean([1.0, 3.0]) == pytest.approx(2.0)
