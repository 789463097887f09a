import logging
import os

import numpy as np
import pytest

from pulsefit.fit import TemplateFitter
from pulsefit.vis import log_fit, plot_fit


@pytest.fixture(scope="module")
def fitter(gauss_template):
    return TemplateFitter(gauss_template)


def test_plot_single_pulse(tmp_path, fitter, make_trace):
    window = make_trace(30, [10.3], [5000], 1500)
    result = fitter.fit(window, [10])

    fig = plot_fit(fitter, result, window, window_start=20, name="det0_3", plot_dir=tmp_path)
    assert os.path.exists(tmp_path / "det0_3.pdf")

    (ax,) = fig.axes
    # samples and total fit only
    assert len(ax.lines) == 2
    assert ax.lines[0].get_xdata()[0] == 20


def test_plot_two_pulses(fitter, make_trace):
    window = make_trace(30, [10.3, 16.3], [5000, 3000], 1500)
    result = fitter.fit(window, [10, 16])

    fig = plot_fit(fitter, result, window, n_points=200)
    (ax,) = fig.axes
    assert len(ax.lines) == 4
    total = ax.lines[-1].get_ydata()
    assert len(total) == 200
    assert np.max(total) == pytest.approx(np.max(window), rel=0.02)


def test_log_fit(caplog, fitter, make_trace):
    window = make_trace(30, [10.3], [5000], 1500)
    result = fitter.fit(window, [10])

    with caplog.at_level(logging.INFO, logger="pulsefit"):
        log_fit(result, "det0")
    assert "fit of det0" in caplog.text
    assert "pulse 0: time = 10.300" in caplog.text
    assert "covariance" in caplog.text
