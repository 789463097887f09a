import numpy as np
import pytest

from pulsefit.config import TemplateBuildConfig
from pulsefit.template import Template, build_template

PULSE_SIGMA = 1.5


def gauss_pulse(t):
    """Unit-area Gaussian pulse shape."""
    t = np.asarray(t, dtype=np.float64)
    return np.exp(-0.5 * (t / PULSE_SIGMA) ** 2) / (PULSE_SIGMA * np.sqrt(2 * np.pi))


def synthetic_trace(n_samples, times, scales, pedestal):
    idx = np.arange(n_samples, dtype=np.float64)
    trace = np.full(n_samples, float(pedestal))
    for t, s in zip(times, scales):
        trace += s * gauss_pulse(idx - t)
    return trace


def calibration_traces(
    n_traces, n_samples=80, peak=40, amplitude=1000.0, baseline=200.0, noise=5.0, seed=42
):
    """Single-pulse traces at uniformly random sub-sample phases, rounded
    to digitizer counts."""
    rng = np.random.default_rng(seed)
    times = peak + rng.uniform(-0.5, 0.5, n_traces)
    idx = np.arange(n_samples, dtype=np.float64)
    traces = baseline + amplitude * gauss_pulse(idx[None, :] - times[:, None])
    traces += rng.normal(0, noise, traces.shape)
    return np.clip(np.round(traces), 0, 4095).astype(np.uint16)


@pytest.fixture(scope="session")
def pulse_shape():
    return gauss_pulse


@pytest.fixture(scope="session")
def make_trace():
    return synthetic_trace


@pytest.fixture(scope="session")
def gauss_template():
    return Template.from_function(gauss_pulse, -8.5, 15.5, n_knots=961)


@pytest.fixture(scope="session")
def build_config():
    return TemplateBuildConfig(
        template_length=24,
        buffer_zone=8,
        baseline_fit_length=10,
        min_peak=350,
        neg_polarity=False,
        n_bins_pseudo_time=50,
        n_time_bins=5,
    )


@pytest.fixture(scope="session")
def cal_traces():
    return calibration_traces(2000)


@pytest.fixture(scope="session")
def template_build(cal_traces, build_config):
    return build_template(cal_traces, build_config)


@pytest.fixture(scope="session")
def make_cal_traces():
    return calibration_traces
