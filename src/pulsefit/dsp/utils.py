from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, Iterator

from ..utils import getenv_bool


class NumbaDefaults(MutableMapping):
    """Numba options shared by the waveform processors.

    Each option is read from a ``PULSEFIT_<OPTION>`` environment variable
    (see :func:`~.utils.getenv_bool`) when the object is created or
    :meth:`reload` is called. Options are compiled into the processors when
    :mod:`pulsefit.dsp.processors` is first imported, so changes after that
    have no effect.

    Examples
    --------
    >>> from numba import guvectorize
    >>> from pulsefit.dsp.utils import numba_defaults_kwargs as nb_kwargs
    >>> @guvectorize([], "", **nb_kwargs, nopython=True) # def proc(...): ...

    >>> from pulsefit.dsp.utils import numba_defaults
    >>> numba_defaults.boundscheck = True
    >>> numba_defaults(cache=False)
    {'cache': False, 'boundscheck': True}
    """

    options = ("cache", "boundscheck")

    def __init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        """Re-read every option from the environment."""
        for opt in self.options:
            self.__dict__[opt] = getenv_bool(f"PULSEFIT_{opt.upper()}")

    def __getitem__(self, item: str) -> Any:
        return self.__dict__[item]

    def __setitem__(self, item: str, val: Any) -> None:
        self.__dict__[item] = val

    def __delitem__(self, item: str) -> None:
        del self.__dict__[item]

    def __iter__(self) -> Iterator:
        return iter(self.__dict__)

    def __len__(self) -> int:
        return len(self.__dict__)

    def __call__(self, **kwargs) -> dict:
        """The options, updated with `kwargs`."""
        return {**self.__dict__, **kwargs}

    def __repr__(self) -> str:
        return f"NumbaDefaults({self.__dict__})"


numba_defaults = NumbaDefaults()
numba_defaults_kwargs = numba_defaults
