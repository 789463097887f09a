"""
This subpackage implements utilities to visualize template fits.
"""

from .fit_display import log_fit, plot_fit

__all__ = ["log_fit", "plot_fit"]
