from __future__ import annotations

from typing import Callable

import numpy as np
from scipy.interpolate import CubicSpline

from ..errors import TemplateError


class Template:
    """Continuously interpolable pulse-shape template.

    Holds two cubic-spline interpolants over the offset domain
    ``[lo_offset, hi_offset]`` (offsets are in samples relative to the pulse
    peak):

    * :meth:`mean`: the expected normalized pulse amplitude at an offset,
    * :meth:`sigma`: the expected sample spread at an offset.

    Both are evaluated as zero outside the domain. A template is never
    modified after construction and can be shared by any number of fits.

    Parameters
    ----------
    knots
        strictly increasing offsets at which `mean` and `sigma` are known.
    mean, sigma
        template values at the knots.
    lo_offset, hi_offset
        domain of the template. Default to the first and last knot, and
        must lie within one sample of them. The splines are extrapolated
        between the domain edges and the outermost knots.
    """

    __slots__ = ("_knots", "_mean", "_sigma", "_lo", "_hi", "_mspline", "_dmspline", "_sspline")

    def __init__(
        self,
        knots: np.ndarray,
        mean: np.ndarray,
        sigma: np.ndarray | None = None,
        lo_offset: float | None = None,
        hi_offset: float | None = None,
    ) -> None:
        knots = np.array(knots, dtype=np.float64)
        mean = np.array(mean, dtype=np.float64)
        sigma = np.zeros_like(mean) if sigma is None else np.array(sigma, dtype=np.float64)

        if knots.ndim != 1 or len(knots) < 2:
            raise TemplateError("a template needs at least two knots")
        if mean.shape != knots.shape or sigma.shape != knots.shape:
            raise TemplateError("template knots, mean and sigma must have equal length")
        if np.any(np.diff(knots) <= 0):
            raise TemplateError("template knots must be strictly increasing")
        if not (np.all(np.isfinite(mean)) and np.all(np.isfinite(sigma))):
            raise TemplateError("template mean and sigma must be finite")

        lo = knots[0] if lo_offset is None else float(lo_offset)
        hi = knots[-1] if hi_offset is None else float(hi_offset)
        if not lo < hi or abs(lo - knots[0]) > 1 or abs(hi - knots[-1]) > 1:
            raise TemplateError(f"invalid template domain [{lo}, {hi}]")

        for arr in (knots, mean, sigma):
            arr.flags.writeable = False

        self._knots = knots
        self._mean = mean
        self._sigma = sigma
        self._lo = float(lo)
        self._hi = float(hi)
        self._mspline = CubicSpline(knots, mean)
        self._dmspline = self._mspline.derivative()
        self._sspline = CubicSpline(knots, sigma)

    @classmethod
    def from_function(
        cls,
        func: Callable[[np.ndarray], np.ndarray],
        lo_offset: float,
        hi_offset: float,
        n_knots: int = 1001,
        sigma_func: Callable[[np.ndarray], np.ndarray] | None = None,
    ) -> Template:
        """Tabulate an analytic pulse shape on a uniform grid of knots."""
        knots = np.linspace(lo_offset, hi_offset, n_knots)
        sigma = None if sigma_func is None else sigma_func(knots)
        return cls(knots, func(knots), sigma)

    @property
    def lo_offset(self) -> float:
        return self._lo

    @property
    def hi_offset(self) -> float:
        return self._hi

    @property
    def knots(self) -> np.ndarray:
        return self._knots

    @property
    def mean_knots(self) -> np.ndarray:
        return self._mean

    @property
    def sigma_knots(self) -> np.ndarray:
        return self._sigma

    def in_domain(self, t: np.ndarray) -> np.ndarray:
        t = np.asarray(t, dtype=np.float64)
        return (t >= self._lo) & (t <= self._hi)

    def _eval(self, spline: CubicSpline, t: np.ndarray) -> np.ndarray:
        t = np.asarray(t, dtype=np.float64)
        inside = self.in_domain(t)
        out = np.zeros(t.shape)
        out[inside] = spline(t[inside])
        return out if out.ndim else float(out)

    def mean(self, t: np.ndarray) -> np.ndarray:
        """Template amplitude at offsets `t`, zero outside the domain."""
        return self._eval(self._mspline, t)

    def mean_derivative(self, t: np.ndarray) -> np.ndarray:
        """Derivative of :meth:`mean` with respect to the offset."""
        return self._eval(self._dmspline, t)

    def sigma(self, t: np.ndarray) -> np.ndarray:
        """Template spread at offsets `t`, zero outside the domain."""
        return self._eval(self._sspline, t)

    def __repr__(self) -> str:
        return (
            f"Template(domain=[{self._lo}, {self._hi}], n_knots={len(self._knots)})"
        )
