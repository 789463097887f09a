"""
pulsefit convenience functions for fitting binned data
"""

from __future__ import annotations

import logging

import numpy as np
from iminuit import Minuit, cost

import pulsefit.math.histogram as pfh

log = logging.getLogger(__name__)


def gauss_amp(x: np.ndarray, mu: float, sigma: float, a: float) -> np.ndarray:
    """Gaussian with height `a` as a parameter."""
    return a * np.exp(-0.5 * ((x - mu) / sigma) ** 2)


def fit_gauss(
    hist: np.ndarray,
    bins: np.ndarray,
    var: np.ndarray = None,
    fit_range: tuple[float, float] = None,
    guess: tuple[float, float, float] = None,
) -> tuple[np.ndarray, np.ndarray, bool]:
    """Least-squares fit of a Gaussian to a histogram.

    Empty bins with zero variance are skipped, as is done for the bins of a
    chi-square fit to counts.

    Parameters
    ----------
    hist, bins, var
        histogrammed data. If `var` is ``None``, Poisson statistics are
        assumed (``var = hist``).
    fit_range
        only bins whose centers lie in ``[lo, hi]`` enter the fit.
    guess
        initial ``(mu, sigma, a)``. Defaults to the histogram mean, RMS and
        maximum.

    Returns
    -------
    pars
        best fit ``(mu, sigma, a)``
    errors
        the Minuit (HESSE) errors of the parameters
    valid
        whether the minimisation succeeded. A fit with fewer than three
        usable bins is never valid.
    """
    if var is None:
        var = hist
    centers = pfh.get_bin_centers(np.asarray(bins, dtype=np.float64))

    mask = ~((hist == 0) & (var == 0))
    if fit_range is not None:
        mask &= (centers >= fit_range[0]) & (centers <= fit_range[1])

    if guess is None:
        mean, rms, _ = pfh.get_hist_stats(hist, bins)
        guess = (mean, rms, np.amax(hist) if len(hist) else 0.0)

    if np.count_nonzero(mask) < 3 or not np.all(np.isfinite(guess)) or guess[1] <= 0:
        return np.asarray(guess, dtype=np.float64), np.full(3, np.nan), False

    cost_func = cost.LeastSquares(
        centers[mask], hist[mask], np.sqrt(var[mask]), gauss_amp
    )
    m = Minuit(cost_func, mu=guess[0], sigma=guess[1], a=guess[2])
    m.limits["sigma"] = (0, None)
    m.print_level = 0
    m.migrad()
    if m.valid:
        m.hesse()

    return np.array(m.values), np.array(m.errors), bool(m.valid)


def fit_local_gauss(
    hist: np.ndarray, bins: np.ndarray, n_sigma: float = 3.0
) -> tuple[float, float, bool]:
    """Robust mean and spread of a histogram.

    A Gaussian is fitted within ``n_sigma`` RMS of the raw histogram mean,
    which suppresses outlying tails. When the fit cannot be done or does not
    converge, the raw mean and RMS are returned instead.

    Returns
    -------
    mu, sigma
        the fitted (or raw) mean and standard deviation
    fitted
        ``True`` when the values come from a converged fit
    """
    mean, rms, n = pfh.get_hist_stats(hist, bins)
    if n == 0:
        return np.nan, np.nan, False
    if rms == 0:
        return mean, 0.0, False

    pars, _, valid = fit_gauss(
        hist,
        bins,
        fit_range=(mean - n_sigma * rms, mean + n_sigma * rms),
        guess=(mean, rms, np.amax(hist)),
    )
    if not valid:
        log.debug(f"local gaussian fit failed, using raw mean {mean} and rms {rms}")
        return mean, rms, False
    return float(pars[0]), float(abs(pars[1])), True
