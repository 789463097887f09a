import numpy as np
import pytest

from pulsefit.dsp.processors import pseudo_time


def test_pseudo_time():
    # symmetric peak: half-way phase
    assert pseudo_time(np.array([0.0, 5, 10, 5, 0]), 2.0) == pytest.approx(0.5)

    # equal right neighbour is defined as exactly 1
    assert pseudo_time(np.array([0.0, 5, 10, 10, 0]), 2.0) == 1.0

    # equal left neighbour gives 0
    assert pseudo_time(np.array([0.0, 10, 10, 5, 0]), 2.0) == 0.0

    # a flat waveform hits the equal-neighbour case too
    assert pseudo_time(np.full(5, 3.0), 2.0) == 1.0

    # test for nan if the peak has no neighbour
    w_in = np.array([10.0, 5, 2, 1, 0])
    assert np.isnan(pseudo_time(w_in, 0.0))
    assert np.isnan(pseudo_time(w_in, 4.0))

    # test for nan if w_in or t_peak has a nan
    assert np.isnan(pseudo_time(np.array([0.0, 5, np.nan, 5, 0]), 2.0))
    assert np.isnan(pseudo_time(np.array([0.0, 5, 10, 5, 0]), np.nan))


def test_pseudo_time_is_monotonic_in_phase(pulse_shape):
    idx = np.arange(20, dtype=np.float64)
    phases = np.linspace(-0.45, 0.45, 19)
    w_in = np.array([pulse_shape(idx - 10 - d) for d in phases])

    pt = pseudo_time(w_in, np.full(len(phases), 10.0))
    assert np.all(np.diff(pt) > 0)
    assert np.all((pt >= 0) & (pt <= 1))
    assert pt[len(phases) // 2] == pytest.approx(0.5)


def test_pseudo_time_negative_polarity(pulse_shape):
    idx = np.arange(20, dtype=np.float64)
    w_pos = 100 + 1000 * pulse_shape(idx - 10.2)
    w_neg = 3000 - w_pos
    assert pseudo_time(w_neg, 10.0) == pytest.approx(pseudo_time(w_pos, 10.0))
