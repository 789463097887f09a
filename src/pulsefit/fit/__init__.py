"""
Separable template fits of trace windows.
"""

from .template_fitter import FitResult, TemplateFitter

__all__ = ["FitResult", "TemplateFitter"]
