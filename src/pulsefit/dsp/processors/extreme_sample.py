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
def extreme_sample(w_in: np.ndarray, sign_in: float, t_out: float, a_out: float):
    """Find the index and value of the polarity-aware extreme sample.

    The extreme is the maximum of ``sign_in * w_in``: pass ``1`` for
    positive-going pulses (maximum) and ``-1`` for negative-going pulses
    (minimum).

    Note
    ----
    The first found instance of the extremum in the waveform is returned.

    Parameters
    ----------
    w_in
        the input waveform.
    sign_in
        the pulse polarity, ``1`` or ``-1``.
    t_out
        the index of the extreme sample.
    a_out
        the value of the extreme sample (not multiplied by `sign_in`).
    """
    t_out[0] = np.nan
    a_out[0] = np.nan

    if np.isnan(w_in).any() or np.isnan(sign_in) or len(w_in) == 0:
        return

    i_ext = 0
    for i in range(1, len(w_in), 1):
        if sign_in * w_in[i] > sign_in * w_in[i_ext]:
            i_ext = i

    t_out[0] = float(i_ext)
    a_out[0] = w_in[i_ext]
