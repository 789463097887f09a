"""
pulsefit convenience functions for 1D and 2D histograms.

1D hists require 3 things: hist, bins, and var:
- hist: an array of histogram values
- bins: an array of bin edges
- var: an array of variances in each bin
If weights are not provided, hist contains counts with variance = counts
(Poisson stats).

The histograms are filled with :mod:`hist` (boost-histogram) and read back as
NumPy arrays. There are no overflow / underflow bins in the returned arrays.
"""

from __future__ import annotations

import logging

import hist as bh
import numba as nb
import numpy as np

log = logging.getLogger(__name__)


def get_hist(
    data: np.ndarray,
    bins: int = 100,
    range: tuple[float, float] | None = None,
    wts: float | np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """return hist, bins, var after binning data

    Parameters
    ----------
    data
        The array of data to be histogrammed
    bins
        the number of uniform bins to be used in the histogram
    range
        (x_lo, x_high) of the bin range. If not provided, the minimum and
        maximum of `data` are used
    wts
        Array of weights for each data point, or a scalar weight. Variances
        are computed from the squared weights.

    Returns
    -------
    hist
        the values in each bin of the histogram
    bins
        an array of bin edges. Includes the upper edge of the last bin, so
        ``len(bins) = len(hist) + 1``
    var
        array of variances in each bin of the histogram
    """
    data = np.asarray(data, dtype=np.float64)
    if range is None:
        range = (np.amin(data), np.amax(data))
    if range[1] <= range[0]:
        # degenerate data, open up a unit-width range around it
        range = (range[0] - 0.5, range[0] + 0.5)

    if wts is not None and np.shape(wts) == ():
        wts = np.full_like(data, wts)

    boost_histogram = bh.Hist(
        bh.axis.Regular(bins=bins, start=range[0], stop=range[1]),
        storage=bh.storage.Weight(),
    )
    boost_histogram.fill(data, weight=wts)
    hist, bins = boost_histogram.to_numpy()
    var = boost_histogram.variances()

    return hist, bins, var


def get_hist2d(
    x: np.ndarray,
    y: np.ndarray,
    bins: tuple[int, int],
    range: tuple[tuple[float, float], tuple[float, float]],
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """return counts, x_bins, y_bins after binning pairs of values

    Parameters
    ----------
    x, y
        coordinates of the entries
    bins
        number of uniform bins along x and y
    range
        ``((x_lo, x_hi), (y_lo, y_hi))``

    Returns
    -------
    counts
        array of shape ``(bins[0], bins[1])``
    x_bins, y_bins
        bin edges along x and y
    """
    boost_histogram = bh.Hist(
        bh.axis.Regular(bins=bins[0], start=range[0][0], stop=range[0][1]),
        bh.axis.Regular(bins=bins[1], start=range[1][0], stop=range[1][1]),
    )
    boost_histogram.fill(np.ravel(x), np.ravel(y))
    return boost_histogram.to_numpy()


@nb.njit(parallel=False, fastmath=True)
def get_bin_centers(bins: np.ndarray) -> np.ndarray:
    """
    Returns an array of bin centers from an input array of bin edges.
    Works for non-uniform binning. Note: a new array is allocated
    """
    return (bins[:-1] + bins[1:]) / 2.0


def get_hist_stats(hist: np.ndarray, bins: np.ndarray) -> tuple[float, float, float]:
    """Mean, RMS and total content of a histogram, computed at bin centers.

    Returns ``(nan, nan, 0)`` for an empty histogram.
    """
    n = np.sum(hist)
    if n <= 0:
        return np.nan, np.nan, 0.0
    centers = get_bin_centers(bins)
    mean = np.sum(hist * centers) / n
    rms = np.sqrt(np.sum(hist * (centers - mean) ** 2) / n)
    return mean, rms, n


def get_cdf_knots(hist: np.ndarray, bins: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Knots of the cumulative distribution of a histogram.

    The cumulative fraction is tabulated at every bin edge, starting at
    ``(bins[0], 0)`` and ending at ``(bins[-1], 1)``.

    Parameters
    ----------
    hist, bins
        histogrammed data. Must have a positive total content.

    Returns
    -------
    x, cdf
        arrays of length ``len(bins)``
    """
    total = np.sum(hist)
    if total <= 0:
        raise ValueError("cannot build the cumulative distribution of an empty histogram")
    cdf = np.concatenate([[0.0], np.cumsum(hist) / total])
    return np.asarray(bins, dtype=np.float64), cdf
