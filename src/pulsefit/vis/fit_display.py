"""
Display of template fits, for channels with the ``draw`` flag set.
"""

from __future__ import annotations

import logging
import os

import matplotlib as mpl

mpl.use("agg")
import matplotlib.pyplot as plt
import numpy as np

from ..fit import FitResult, TemplateFitter

log = logging.getLogger(__name__)


def log_fit(result: FitResult, name: str = "") -> None:
    """Log the fitted parameters with their errors and the covariance."""
    lines = [f"fit of {name}: chi2 = {result.chi2:.2f}, converged = {result.converged}"]
    for k in range(result.n_pulses):
        lines.append(
            f"  pulse {k}: time = {result.times[k]:.3f} +/- {result.time_error(k):.3f}, "
            f"scale = {result.scales[k]:.1f} +/- {result.scale_error(k):.1f}"
        )
    lines.append(f"  pedestal = {result.pedestal:.2f} +/- {result.pedestal_error():.2f}")
    lines.append(f"  covariance:\n{np.array2string(result.covariance, precision=4)}")
    log.info("\n".join(lines))


def plot_fit(
    fitter: TemplateFitter,
    result: FitResult,
    window: np.ndarray,
    window_start: int = 0,
    name: str = "fit",
    plot_dir: str = None,
    n_points: int = 1000,
) -> plt.Figure:
    """Draw the samples of a fit window with the fitted model.

    For two-pulse fits the single-pulse components are drawn as well.

    Parameters
    ----------
    fitter
        the fitter that produced `result`.
    result
        the fit to draw.
    window
        the fitted samples.
    window_start
        index of the first sample in the full trace, sets the x axis.
    name
        detector name, used in the title and for the file name.
    plot_dir
        if given, the figure is saved as ``<plot_dir>/<name>.pdf`` and
        closed.

    Returns
    -------
    fig
        the figure.
    """
    log_fit(result, name)

    window = np.asarray(window, dtype=np.float64)
    x = np.linspace(0, len(window) - 1, n_points)

    fig, ax = plt.subplots()
    ax.plot(
        window_start + np.arange(len(window)),
        window,
        "o",
        color="k",
        label="samples",
    )

    total = np.full(n_points, result.pedestal)
    for k, (t, s) in enumerate(zip(result.times, result.scales)):
        component = s * fitter.template.mean(x - t)
        total += component
        if result.n_pulses > 1:
            ax.plot(
                window_start + x,
                result.pedestal + component,
                "--",
                label=f"pulse {k}",
            )
    ax.plot(window_start + x, total, "-", color="r", label="fit")

    ax.set_xlabel("sample index")
    ax.set_ylabel("ADC counts")
    ax.set_title(f"{name}: $\\chi^2$ = {result.chi2:.2f}")
    ax.legend(loc="best")

    if plot_dir is not None:
        os.makedirs(plot_dir, exist_ok=True)
        fig.savefig(os.path.join(plot_dir, f"{name}.pdf"))
        plt.close(fig)
    return fig
