"""
Per-event pulse processing of one detector channel.

The extreme sample of the trace anchors a fixed-length fit window. A
single-pulse template fit is tried at the configured peak index and at a few
offsets from it (the retry ladder) until one is accepted. If the retained
single-pulse fit leaves too large a chi-square, a two-pulse fit is tried,
seeded with the largest residual of the single-pulse model and then with a
fixed ladder of time pairs.
"""

from __future__ import annotations

import logging
from dataclasses import astuple, dataclass, fields
from typing import Sequence

import numpy as np

from ..config import FitConfiguration, FitterSettings
from ..dsp.processors import extreme_sample, three_sample_estimators
from ..errors import ConfigurationError
from ..fit import FitResult, TemplateFitter

log = logging.getLogger(__name__)


@dataclass
class PulseSummary:
    """Summary of one channel in one event.

    Attributes
    ----------
    energy
        fitted scale of the leading pulse, sign-flipped for negative
        polarity.
    baseline
        fitted pedestal.
    three_sample_ampl
        three-sample amplitude minus the pedestal, sign-flipped for negative
        polarity.
    time
        fitted time of the leading pulse, in samples from the trace start.
    three_sample_time
        three-sample time, in samples from the trace start.
    chi2
        chi-square of the retained fit.
    fit_converged
        the retained fit converged.
    successful_fit
        the single-pulse retry ladder accepted a fit.
    """

    energy: float = np.nan
    baseline: float = np.nan
    three_sample_ampl: float = np.nan
    time: float = np.nan
    three_sample_time: float = np.nan
    chi2: float = np.nan
    fit_converged: bool = False
    successful_fit: bool = False

    @classmethod
    def dtype(cls) -> np.dtype:
        """NumPy structured dtype with one field per attribute, in order."""
        return np.dtype(
            [(f.name, "?" if f.type in (bool, "bool") else "f8") for f in fields(cls)]
        )

    def as_record(self) -> tuple:
        return astuple(self)


@dataclass
class PulseFit:
    """Everything produced while processing one channel of one event."""

    summary: PulseSummary
    result: FitResult
    window_start: int
    window: np.ndarray
    n_pulses_tried: int = 1


def locate_peak(samples: np.ndarray, sign: float) -> tuple[int, float]:
    """Index and value of the polarity-aware extreme sample."""
    t_peak, a_peak = extreme_sample(np.asarray(samples, dtype=np.float64), sign)
    if np.isnan(t_peak):
        return -1, np.nan
    return int(t_peak), float(a_peak)


def fit_window(
    samples: np.ndarray, peak: int, conf: FitConfiguration
) -> tuple[int, np.ndarray]:
    """Cut the fit window out of a trace.

    The window holds ``conf.fit_length`` samples and starts
    ``conf.peak_index`` samples before `peak`.

    Raises
    ------
    ConfigurationError
        if the window would run off either end of the trace.
    """
    start = peak - conf.peak_index
    stop = start + conf.fit_length
    if start < 0 or stop > len(samples):
        raise ConfigurationError(
            f"fit window [{start}, {stop}) around the peak at {peak} runs off a "
            f"trace of {len(samples)} samples",
            detector=conf.name,
        )
    return start, np.asarray(samples[start:stop], dtype=np.float64)


def accept_single_pulse(result: FitResult, conf: FitConfiguration) -> bool:
    """Acceptance test of the single-pulse retry ladder."""
    return (
        result.converged
        and abs(result.times[0] - conf.peak_index) < conf.wiggle_room
        and np.sign(result.scales[0]) == conf.sign
    )


def single_pulse_ladder(
    fitter: TemplateFitter,
    window: np.ndarray,
    conf: FitConfiguration,
    offsets: Sequence[int] = (0, 1, -1),
) -> tuple[FitResult, bool]:
    """Try single-pulse fits at ``conf.peak_index + offset`` for each offset.

    Returns
    -------
    result, success
        the first accepted fit and ``True``, or the last attempt and
        ``False`` if no fit was accepted.
    """
    result = None
    for offset in offsets:
        result = fitter.fit(window, [conf.peak_index + offset])
        if accept_single_pulse(result, conf):
            return result, True
    log.debug(
        f"{conf.name}: no single-pulse fit accepted at offsets {list(offsets)}, "
        f"last time {result.times[0]:.3f}, scale {result.scales[0]:.1f}"
    )
    return result, False


def two_pulse_escalation(
    fitter: TemplateFitter,
    window: np.ndarray,
    conf: FitConfiguration,
    one_pulse: FitResult,
    settings: FitterSettings,
) -> FitResult | None:
    """Fit two pulses when a single pulse leaves too large a chi-square.

    The first attempt pairs the configured peak index with the most extreme
    residual of the single-pulse model. While the chi-square stays above
    ``settings.two_pulse_retry_chi2_threshold``, the pairs of
    ``settings.two_pulse_offsets`` (relative to the peak index) are tried in
    turn.

    Returns
    -------
    result
        the two-pulse attempt of lowest chi-square, or ``None`` if the
        single-pulse chi-square does not exceed
        ``settings.two_pulse_chi2_threshold``.
    """
    if not one_pulse.chi2 > settings.two_pulse_chi2_threshold:
        return None

    residual = window - fitter.evaluate(one_pulse, len(window))
    second, _ = locate_peak(residual, conf.sign)
    log.debug(
        f"{conf.name}: single-pulse chi2 {one_pulse.chi2:.1f} above threshold, "
        f"fitting two pulses at ({conf.peak_index}, {second})"
    )

    guesses = [(conf.peak_index, second)] + [
        (conf.peak_index + a, conf.peak_index + b) for a, b in settings.two_pulse_offsets
    ]
    best = None
    for guess in guesses:
        result = fitter.fit(window, guess)
        if best is None or result.chi2 < best.chi2:
            best = result
        if best.chi2 < settings.two_pulse_retry_chi2_threshold:
            break
    else:
        log.debug(
            f"{conf.name}: two-pulse ladder exhausted, best chi2 {best.chi2:.1f}"
        )
    return best


def fit_pulse(
    samples: np.ndarray,
    conf: FitConfiguration,
    fitter: TemplateFitter,
    settings: FitterSettings = None,
) -> PulseFit | None:
    """Process one channel of one event.

    Parameters
    ----------
    samples
        the full trace of the channel.
    conf
        the channel's fit configuration.
    fitter
        template fitter bound to the channel's template.
    settings
        retry ladder and escalation settings.

    Returns
    -------
    fit
        the summary together with the retained fit and its window, or
        ``None`` if the peak falls outside ``settings.peak_gate``.

    Raises
    ------
    ConfigurationError
        if the fit window would run off the trace.
    """
    settings = FitterSettings() if settings is None else settings
    trace = np.asarray(samples, dtype=np.float64)

    peak, peak_value = locate_peak(trace, conf.sign)
    lo, hi = settings.peak_gate
    if not lo <= peak_value <= hi:
        log.debug(f"{conf.name}: peak value {peak_value} outside {settings.peak_gate}")
        return None

    start, window = fit_window(trace, peak, conf)

    result, success = single_pulse_ladder(
        fitter, window, conf, settings.single_pulse_offsets
    )
    n_pulses = 1
    two_pulse = two_pulse_escalation(fitter, window, conf, result, settings)
    if two_pulse is not None:
        n_pulses = 2
        if two_pulse.chi2 < result.chi2:
            result = two_pulse

    tsa, tst = three_sample_estimators(trace, float(peak))
    summary = PulseSummary(
        energy=conf.sign * result.scales[0],
        baseline=result.pedestal,
        three_sample_ampl=conf.sign * (tsa - result.pedestal),
        time=result.times[0] + start,
        three_sample_time=float(tst),
        chi2=result.chi2,
        fit_converged=result.converged,
        successful_fit=success,
    )
    return PulseFit(summary, result, start, window, n_pulses)


def process_pulse(
    samples: np.ndarray,
    conf: FitConfiguration,
    fitter: TemplateFitter,
    settings: FitterSettings = None,
) -> PulseSummary | None:
    """Summary of one channel of one event, see :func:`fit_pulse`."""
    fit = fit_pulse(samples, conf, fitter, settings)
    return None if fit is None else fit.summary
