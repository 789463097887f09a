"""
Per-event pulse processing: peak location, the single-pulse retry ladder, the
two-pulse escalation and the three-sample estimators, plus the batch driver
writing :class:`PulseSummary` records.
"""

from .build_pulses import (
    Detector,
    SummaryWriter,
    analyze_pulses,
    bind_detectors,
    read_summaries,
)
from .pulse_processor import (
    PulseFit,
    PulseSummary,
    accept_single_pulse,
    fit_pulse,
    fit_window,
    locate_peak,
    process_pulse,
    single_pulse_ladder,
    two_pulse_escalation,
)

__all__ = [
    "Detector",
    "PulseFit",
    "PulseSummary",
    "SummaryWriter",
    "accept_single_pulse",
    "analyze_pulses",
    "bind_detectors",
    "fit_pulse",
    "fit_window",
    "locate_peak",
    "process_pulse",
    "read_summaries",
    "single_pulse_ladder",
    "two_pulse_escalation",
]
