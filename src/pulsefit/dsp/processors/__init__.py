r"""
Contains the waveform processors, implemented using Numba's
:func:`numba.guvectorize` to implement NumPy's :class:`numpy.ufunc` interface.
All of the functions are void functions whose outputs are given as
parameters. Thanks to the :class:`~numpy.ufunc` interface they broadcast over
arrays of waveforms, so the Template Builder can summarize a whole calibration
dataset in one call, and they can also be called to return NumPy arrays.
"""

from .extreme_sample import extreme_sample
from .pseudo_time import pseudo_time
from .three_sample import three_sample_estimators

__all__ = ["extreme_sample", "pseudo_time", "three_sample_estimators"]
