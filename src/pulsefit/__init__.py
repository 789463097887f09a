"""
pulsefit: sub-sample pulse templates and template fits of digitized detector
traces.
"""

from ._version import version as __version__
from .fit import FitResult, TemplateFitter
from .pulses import PulseSummary, process_pulse
from .template import Template, build_template

__all__ = [
    "__version__",
    "FitResult",
    "PulseSummary",
    "Template",
    "TemplateFitter",
    "build_template",
    "process_pulse",
]
