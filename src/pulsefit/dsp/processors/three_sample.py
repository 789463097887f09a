from __future__ import annotations

import numpy as np
from numba import guvectorize

from pulsefit.dsp.utils import numba_defaults_kwargs as nb_kwargs


@guvectorize(
    [
        "void(float32[:], float32, float32[:], float32[:])",
        "void(float64[:], float64, float64[:], float64[:])",
    ],
    "(n),()->(),()",
    **nb_kwargs,
)
def three_sample_estimators(
    w_in: np.ndarray, t_peak: float, a_out: float, t_out: float
):
    r"""Parabolic amplitude and time of a peak from three samples.

    A parabola is passed through the extreme sample :math:`w_0` at index
    :math:`p` and its neighbours :math:`w_-`, :math:`w_+`:

    .. math::
        a = w_0 + \frac{(w_+ - w_-)^2}{16 w_0 - 8 (w_+ + w_-)} \qquad
        t = p + \frac{w_+ - w_-}{4 w_0 - 2 (w_+ + w_-)}

    If the three samples are collinear the denominators vanish and the
    estimators fall back to :math:`a = w_0` and :math:`t = p`.

    Parameters
    ----------
    w_in
        the input waveform.
    t_peak
        index of the extreme sample. If it has no neighbour on either side,
        the outputs are :any:`numpy.nan`.
    a_out
        the three-sample amplitude (not baseline subtracted).
    t_out
        the three-sample time, in samples from the start of `w_in`.
    """
    a_out[0] = np.nan
    t_out[0] = np.nan

    if np.isnan(w_in).any() or np.isnan(t_peak):
        return

    p = int(t_peak)
    if p < 1 or p > len(w_in) - 2:
        return

    w0 = w_in[p]
    diff = w_in[p + 1] - w_in[p - 1]
    curv = 2.0 * w0 - (w_in[p + 1] + w_in[p - 1])

    if curv == 0:
        a_out[0] = w0
        t_out[0] = float(p)
        return

    a_out[0] = w0 + diff * diff / (8.0 * curv)
    t_out[0] = p + diff / (2.0 * curv)
