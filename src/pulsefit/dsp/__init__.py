"""
Waveform-level signal processing: peak location and the closed-form estimators
computed directly from the samples around a peak.
"""

from .processors import extreme_sample, pseudo_time, three_sample_estimators

__all__ = ["extreme_sample", "pseudo_time", "three_sample_estimators"]
