"""
This module builds "fuzzy" pulse templates from calibration traces holding one
isolated pulse each.

Every trace is summarized (peak, pseudo-time, baseline, integral), the biased
pseudo-time is mapped to a uniform sub-sample phase through its empirical
cumulative distribution, and the normalized traces are stacked at their
sub-sample phase in a fine 2D histogram of (offset, amplitude). A local
Gaussian fit to every offset bin gives the template mean and spread.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy.interpolate import PchipInterpolator

import pulsefit.math.binned_fitting as pff
import pulsefit.math.histogram as pfh

from ..config import TemplateBuildConfig
from ..dsp.processors import extreme_sample, pseudo_time
from ..errors import TemplateError
from .template import Template

log = logging.getLogger(__name__)


@dataclass
class TraceSummary:
    """Summary of one calibration trace.

    Attributes
    ----------
    peak_index
        index of the extreme sample.
    pseudo_time
        arctangent sub-sample phase estimate, in ``[0, 1]``.
    baseline
        mean of the baseline window.
    integral
        baseline-subtracted sum of the template window.
    normalized_ampl
        ``(peak - baseline) / integral``.
    bad
        the trace is excluded from the template.
    """

    peak_index: int
    pseudo_time: float
    baseline: float = np.nan
    integral: float = np.nan
    normalized_ampl: float = np.nan
    bad: bool = False


@dataclass
class TemplateBuild:
    """A template together with the intermediate products of its build."""

    template: Template
    summaries: list[TraceSummary]
    pseudo_time_hist: np.ndarray
    pseudo_time_bins: np.ndarray
    real_time_knots: tuple[np.ndarray, np.ndarray]
    fuzzy_template: np.ndarray
    fuzzy_x_bins: np.ndarray
    fuzzy_y_bins: np.ndarray
    bin_counts: np.ndarray
    low_count: np.ndarray
    gauss_fitted: np.ndarray = field(default=None)

    @property
    def n_good(self) -> int:
        return sum(not s.bad for s in self.summaries)


def summarize_traces(traces: np.ndarray, config: TemplateBuildConfig) -> list[TraceSummary]:
    """Summarize a set of calibration traces.

    A trace is flagged bad if its peak fails the polarity-aware
    ``min_peak`` gate, if the peak has no neighbour sample, if the baseline
    window would start before the trace, or if the template window would
    run past its end.

    Parameters
    ----------
    traces
        array of shape ``(n_traces, n_samples)``.
    config
        template build configuration.
    """
    traces = np.atleast_2d(np.asarray(traces, dtype=np.float64))
    n_traces, n_samples = traces.shape

    t_peak, a_peak = extreme_sample(traces, config.sign)
    pt = pseudo_time(traces, t_peak)
    peaks = np.where(np.isnan(t_peak), -1, t_peak).astype(np.int64)

    low_ampl = config.sign * a_peak < config.sign * config.min_peak
    no_neighbour = np.isnan(pt)
    base_start = peaks - config.buffer_zone - config.baseline_fit_length
    base_overrun = base_start < 0
    norm_overrun = peaks - config.buffer_zone + config.template_length > n_samples
    bad = low_ampl | no_neighbour | base_overrun | norm_overrun

    log.debug(
        f"{np.count_nonzero(bad)} of {n_traces} traces rejected: "
        f"{np.count_nonzero(low_ampl)} below min_peak, "
        f"{np.count_nonzero(no_neighbour)} peaked on the trace edge, "
        f"{np.count_nonzero(base_overrun & ~low_ampl)} baseline window before trace start, "
        f"{np.count_nonzero(norm_overrun & ~low_ampl)} template window past trace end"
    )

    baseline = np.full(n_traces, np.nan)
    integral = np.full(n_traces, np.nan)
    good = np.flatnonzero(~bad)
    if len(good):
        rows = good[:, None]
        base_idx = base_start[good, None] + np.arange(config.baseline_fit_length)
        baseline[good] = np.mean(traces[rows, base_idx], axis=1)
        win_idx = (peaks[good] - config.buffer_zone)[:, None] + np.arange(
            config.template_length
        )
        integral[good] = (
            np.sum(traces[rows, win_idx], axis=1)
            - config.template_length * baseline[good]
        )

    with np.errstate(divide="ignore", invalid="ignore"):
        normalized = (a_peak - baseline) / integral
    # a vanishing or opposite-sign integral cannot normalize the pulse
    degenerate = ~bad & ~(normalized > 0)
    if np.any(degenerate):
        log.debug(f"{np.count_nonzero(degenerate)} traces with a degenerate integral")
    bad |= degenerate

    return [
        TraceSummary(
            peak_index=int(peaks[i]),
            pseudo_time=float(pt[i]),
            baseline=float(baseline[i]),
            integral=float(integral[i]),
            normalized_ampl=float(normalized[i]),
            bad=bool(bad[i]),
        )
        for i in range(n_traces)
    ]


def normalized_window(
    trace: np.ndarray, summary: TraceSummary, config: TemplateBuildConfig
) -> np.ndarray:
    """Baseline-subtracted, integral-normalized template window of a trace.

    Returns zeros for a bad trace.
    """
    if summary.bad:
        return np.zeros(config.template_length)
    beg = summary.peak_index - config.buffer_zone
    window = np.asarray(trace[beg : beg + config.template_length], dtype=np.float64)
    return (window - summary.baseline) / summary.integral


def real_time_map(
    pseudo_times: np.ndarray, n_bins: int
) -> tuple[PchipInterpolator, np.ndarray, np.ndarray]:
    """Map from pseudo-time to a uniform sub-sample phase.

    The pseudo-times are histogrammed on ``[0, 1]`` and the normalized
    cumulative distribution, tabulated at the bin edges, is interpolated with
    a monotonic cubic (PCHIP) spline.

    Returns
    -------
    rt_map
        the map, valid on ``[0, 1]``
    hist, bins
        the normalized pseudo-time histogram
    """
    hist, bins, _ = pfh.get_hist(pseudo_times, bins=n_bins, range=(0.0, 1.0))
    hist = hist.copy()
    # pseudo-times of exactly 1 fall on the upper edge
    hist[-1] += np.count_nonzero(np.asarray(pseudo_times) == 1.0)
    x, cdf = pfh.get_cdf_knots(hist, bins)
    return PchipInterpolator(x, cdf), hist / np.sum(hist), bins


def _amplitude_range_max(normalized_ampl: np.ndarray) -> float:
    """Upper amplitude of the fuzzy template: Gaussian mean + 5 sigma."""
    hist, bins, var = pfh.get_hist(normalized_ampl, bins=100)
    mean, rms, _ = pfh.get_hist_stats(hist, bins)
    pars, _, valid = pff.fit_gauss(hist, bins, var)
    if valid:
        mu, sigma = pars[0], abs(pars[1])
    else:
        log.debug("gaussian fit of the normalized amplitudes failed, using mean and rms")
        mu, sigma = mean, rms
    range_max = mu + 5 * sigma
    if not range_max > np.amax(normalized_ampl) * 0.5:
        range_max = 1.1 * np.amax(normalized_ampl)
    return float(range_max)


def build_template(traces: np.ndarray, config: TemplateBuildConfig) -> TemplateBuild:
    """Build a pulse template from single-pulse calibration traces.

    Parameters
    ----------
    traces
        array of shape ``(n_traces, n_samples)`` holding one isolated pulse
        per trace.
    config
        template build configuration.

    Returns
    -------
    build
        the :class:`.Template` and the build diagnostics. The template
        covers the offsets ``[-0.5 - buffer_zone, template_length - 0.5 -
        buffer_zone]`` with one knot per fine bin center.

    Raises
    ------
    TemplateError
        if no trace survives the summary cuts.
    """
    traces = np.atleast_2d(np.asarray(traces, dtype=np.float64))
    summaries = summarize_traces(traces, config)
    good = np.array([not s.bad for s in summaries])
    n_good = np.count_nonzero(good)
    log.info(f"building template from {n_good} of {len(summaries)} traces")
    if n_good == 0:
        raise TemplateError("no calibration trace passed the summary cuts")

    pt = np.array([s.pseudo_time for s in summaries])[good]
    rt_map, pt_hist, pt_bins = real_time_map(pt, config.n_bins_pseudo_time)
    real_time = np.clip(rt_map(pt), 0.0, 1.0)

    norm_ampl = np.array([s.normalized_ampl for s in summaries])[good]
    range_max = _amplitude_range_max(norm_ampl)

    # stack the normalized windows at their sub-sample phase
    good_summaries = [s for s in summaries if not s.bad]
    windows = np.array(
        [
            normalized_window(trace, s, config)
            for trace, s in zip(traces[good], good_summaries)
        ]
    )
    offsets = (
        np.arange(config.template_length)[None, :]
        - real_time[:, None]
        + 0.5
        - config.buffer_zone
    )

    lo, hi = config.domain
    n_x = config.template_length * config.n_time_bins
    fuzzy, x_bins, y_bins = pfh.get_hist2d(
        offsets,
        windows,
        bins=(n_x, config.n_amplitude_bins),
        range=((lo, hi), (-0.2 * range_max, range_max)),
    )

    means = np.full(n_x, np.nan)
    sigmas = np.full(n_x, np.nan)
    counts = np.sum(fuzzy, axis=1)
    low_count = counts < config.min_bin_count
    fitted = np.zeros(n_x, dtype=bool)
    for i in range(n_x):
        if counts[i] == 0:
            continue
        if low_count[i]:
            means[i], sigmas[i], _ = pfh.get_hist_stats(fuzzy[i], y_bins)
            continue
        means[i], sigmas[i], fitted[i] = pff.fit_local_gauss(fuzzy[i], y_bins)

    if np.any(low_count):
        log.warning(
            f"{np.count_nonzero(low_count)} of {n_x} template bins hold fewer than "
            f"{config.min_bin_count} entries: bins {np.flatnonzero(low_count).tolist()}"
        )
    failed = ~fitted & ~low_count & (counts > 0)
    if np.any(failed):
        log.warning(
            f"gaussian fit failed in {np.count_nonzero(failed)} template "
            "bins, raw mean and rms used instead"
        )

    centers = pfh.get_bin_centers(x_bins)
    filled = counts > 0
    if np.count_nonzero(filled) < 2:
        raise TemplateError("fewer than two template bins hold entries")
    if not np.all(filled):
        means = np.interp(centers, centers[filled], means[filled])
        sigmas = np.interp(centers, centers[filled], sigmas[filled])

    template = Template(centers, means, sigmas, lo_offset=lo, hi_offset=hi)
    return TemplateBuild(
        template=template,
        summaries=summaries,
        pseudo_time_hist=pt_hist,
        pseudo_time_bins=pt_bins,
        real_time_knots=(rt_map.x, rt_map(rt_map.x)),
        fuzzy_template=fuzzy,
        fuzzy_x_bins=x_bins,
        fuzzy_y_bins=y_bins,
        bin_counts=counts,
        low_count=low_count,
        gauss_fitted=fitted,
    )
