from __future__ import annotations

import numpy as np
from numba import guvectorize

from pulsefit.dsp.utils import numba_defaults_kwargs as nb_kwargs


@guvectorize(
    [
        "void(float32[:], float32, float32[:])",
        "void(float64[:], float64, float64[:])",
    ],
    "(n),()->()",
    **nb_kwargs,
)
def pseudo_time(w_in: np.ndarray, t_peak: float, pt_out: float):
    r"""Estimate the sub-sample phase of a peak from its two neighbours.

    .. math::
        pt = \frac{2}{\pi}\arctan\frac{w_{p-1} - w_p}{w_{p+1} - w_p}

    The estimator is monotonic in the true arrival phase but not uniform; the
    Template Builder maps it to a uniform phase through its empirical
    cumulative distribution. It is defined as exactly ``1`` when
    :math:`w_{p+1} = w_p` and clipped to :math:`[0, 1]`.

    Parameters
    ----------
    w_in
        the input waveform.
    t_peak
        index of the extreme sample. If it has no neighbour on either side,
        the output is :any:`numpy.nan`.
    pt_out
        the pseudo-time.
    """
    pt_out[0] = np.nan

    if np.isnan(w_in).any() or np.isnan(t_peak):
        return

    p = int(t_peak)
    if p < 1 or p > len(w_in) - 2:
        return

    if w_in[p + 1] == w_in[p]:
        pt_out[0] = 1.0
        return

    pt = 2.0 / np.pi * np.arctan((w_in[p - 1] - w_in[p]) / (w_in[p + 1] - w_in[p]))
    pt_out[0] = min(max(pt, 0.0), 1.0)
