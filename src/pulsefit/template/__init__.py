"""
Pulse-shape templates: the :class:`Template` value object, the Template
Builder and the HDF5 template store.
"""

from .build_template import (
    TemplateBuild,
    TraceSummary,
    build_template,
    real_time_map,
    summarize_traces,
)
from .make_template import make_template
from .store import list_templates, read_template, write_template
from .template import Template

__all__ = [
    "Template",
    "TemplateBuild",
    "TraceSummary",
    "build_template",
    "list_templates",
    "make_template",
    "read_template",
    "real_time_map",
    "summarize_traces",
    "write_template",
]
