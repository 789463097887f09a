r"""
Template fits of one or two pulses on a flat pedestal.

The model at sample index :math:`i` is

.. math::
    y_i = p + \sum_k s_k \, T(i - t_k)

with :math:`T` the template mean. It is linear in the scales :math:`s_k` and
the pedestal :math:`p`, which are profiled out by a linear least-squares
solve for every trial set of times. The times are then found by minimising
the profiled residual sum of squares with :mod:`iminuit`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from iminuit import Minuit

from ..math.least_squares import MAX_CONDITION, fit_linear_basis
from ..template import Template

log = logging.getLogger(__name__)


@dataclass
class FitResult:
    """Outcome of a template fit of `n` pulses.

    Attributes
    ----------
    times
        pulse times, in samples from the start of the fitted window.
    scales
        pulse scales (negative for negative-going pulses).
    pedestal
        baseline shared by all pulses.
    covariance
        ``(2n + 1) x (2n + 1)`` covariance matrix ordered as
        ``[times..., scales..., pedestal]``, assuming unit sample variance.
    chi2
        residual sum of squares of the best fit.
    converged
        ``False`` if the time search did not converge within the call budget,
        or if the linear solve was singular at any trial times visited by the
        search or at the best fit.
    """

    times: np.ndarray
    scales: np.ndarray
    pedestal: float
    covariance: np.ndarray
    chi2: float
    converged: bool
    n_calls: int = field(default=0, compare=False)
    n_singular: int = field(default=0, compare=False)

    @property
    def n_pulses(self) -> int:
        return len(self.times)

    @property
    def errors(self) -> np.ndarray:
        """Square roots of the covariance diagonal."""
        with np.errstate(invalid="ignore"):
            return np.sqrt(np.diag(self.covariance))

    def time_error(self, k: int = 0) -> float:
        return float(self.errors[k])

    def scale_error(self, k: int = 0) -> float:
        return float(self.errors[self.n_pulses + k])

    def pedestal_error(self) -> float:
        return float(self.errors[2 * self.n_pulses])


class _ProfiledChi2:
    """Residual sum of squares as a function of the pulse times only."""

    errordef = Minuit.LEAST_SQUARES

    def __init__(self, template: Template, y: np.ndarray) -> None:
        self.template = template
        self.y = y
        self.idx = np.arange(len(y), dtype=np.float64)
        # returned for singular trial times: worse than any pedestal-only fit
        self.penalty = 2.0 * float(np.sum((y - np.mean(y)) ** 2)) + 1.0
        self.n_singular = 0

    def basis(self, times: Sequence[float]) -> np.ndarray:
        return np.array([self.template.mean(self.idx - t) for t in times])

    def __call__(self, times: np.ndarray) -> float:
        _, chi2, ok = fit_linear_basis(self.basis(times), self.y)
        if not ok:
            self.n_singular += 1
            return self.penalty
        return chi2


class TemplateFitter:
    """Fit one or two copies of a template to a window of samples.

    The fitter holds no per-fit state, so a single instance may be shared
    between fits of the same channel.

    Parameters
    ----------
    template
        the pulse template.
    tolerance
        Minuit tolerance of the time search.
    max_calls
        maximum number of evaluations of the profiled chi-square.
    """

    def __init__(
        self, template: Template, tolerance: float = 1e-4, max_calls: int = 2000
    ) -> None:
        self.template = template
        self.tolerance = tolerance
        self.max_calls = max_calls

    def fit(self, samples: Sequence[float], time_guesses: Sequence[float]) -> FitResult:
        """Fit the template to `samples`.

        Parameters
        ----------
        samples
            the window of sample values.
        time_guesses
            one or two initial pulse times, in samples from the start of the
            window.

        Returns
        -------
        result
            the best fit. Non-convergence is reported through
            :attr:`FitResult.converged`, never raised.
        """
        y = np.asarray(samples, dtype=np.float64)
        guesses = np.atleast_1d(np.asarray(time_guesses, dtype=np.float64))
        if len(guesses) not in (1, 2):
            raise ValueError(f"can fit one or two pulses, got {len(guesses)} guesses")
        if len(y) < 2 * len(guesses) + 2:
            raise ValueError(f"{len(y)} samples are too few to fit {len(guesses)} pulses")

        # times are kept inside the window, never started on its edges
        t_lo, t_hi = 0.0, len(y) - 1.0
        guesses = np.clip(guesses, t_lo + 0.5, t_hi - 0.5)

        cost = _ProfiledChi2(self.template, y)
        m = Minuit(cost, guesses)
        m.errors = np.full(len(guesses), 0.5)
        m.limits = [(t_lo, t_hi)] * len(guesses)
        m.tol = self.tolerance
        m.strategy = 1
        m.print_level = 0
        m.migrad(ncall=self.max_calls)

        times = np.array(m.values, dtype=np.float64)
        coeffs, chi2, ok = fit_linear_basis(cost.basis(times), y)
        converged = bool(m.valid) and ok and cost.n_singular == 0

        cov = self._covariance(times, coeffs, len(y)) if ok else None
        if cov is None:
            converged = False
            cov = np.full((2 * len(times) + 1, 2 * len(times) + 1), np.nan)

        if not converged:
            log.debug(
                f"fit of {len(times)} pulse(s) from {guesses} did not converge "
                f"(valid={m.valid}, linear solve ok={ok}, {cost.n_singular} singular "
                f"trial(s), calls={m.nfcn})"
            )

        return FitResult(
            times=times,
            scales=coeffs[:-1].copy(),
            pedestal=float(coeffs[-1]),
            covariance=cov,
            chi2=chi2,
            converged=converged,
            n_calls=m.nfcn,
            n_singular=cost.n_singular,
        )

    def _covariance(
        self, times: np.ndarray, coeffs: np.ndarray, n: int
    ) -> np.ndarray | None:
        """Inverse of the linearized Fisher information at the best fit."""
        idx = np.arange(n, dtype=np.float64)
        scales = coeffs[:-1]
        jac = np.empty((n, 2 * len(times) + 1))
        for k, (t, s) in enumerate(zip(times, scales)):
            jac[:, k] = -s * self.template.mean_derivative(idx - t)
            jac[:, len(times) + k] = self.template.mean(idx - t)
        jac[:, -1] = 1.0

        fisher = jac.T @ jac
        if not np.all(np.isfinite(fisher)):
            return None
        # singularity is tested on the correlation-normalized matrix
        norm = np.sqrt(np.diag(fisher))
        if np.any(norm == 0):
            return None
        corr = fisher / np.outer(norm, norm)
        if np.linalg.cond(corr) > MAX_CONDITION:
            return None
        try:
            return np.linalg.inv(corr) / np.outer(norm, norm)
        except np.linalg.LinAlgError:
            return None

    def evaluate(self, result: FitResult, n_samples: int) -> np.ndarray:
        """Model prediction of a fit result on samples ``0..n_samples-1``."""
        idx = np.arange(n_samples, dtype=np.float64)
        model = np.full(n_samples, result.pedestal)
        for t, s in zip(result.times, result.scales):
            model += s * self.template.mean(idx - t)
        return model
