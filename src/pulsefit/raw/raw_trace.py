from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..config import DIGITIZER_TYPES, DigitizerConfig
from ..errors import ConfigurationError


class RawTrace:
    """Read-only sequence of digitizer samples with its clock value.

    Parameters
    ----------
    samples
        the sample values, one per digitizer time bin.
    clock
        device (or system) clock value of the trace.
    """

    __slots__ = ("_samples", "clock")

    def __init__(self, samples: np.ndarray, clock: int = 0) -> None:
        samples = np.array(samples)
        if samples.ndim != 1:
            raise ValueError("a raw trace must be one-dimensional")
        samples.flags.writeable = False
        self._samples = samples
        self.clock = int(clock)

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    def sample_at(self, index: int) -> float:
        if not 0 <= index < len(self._samples):
            raise IndexError(f"sample {index} is outside a trace of {len(self)} samples")
        return self._samples[index]

    def __len__(self) -> int:
        return len(self._samples)

    def __getitem__(self, item):
        return self._samples[item]

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self._samples, dtype=dtype)

    def __repr__(self) -> str:
        return f"RawTrace(n_samples={len(self)}, clock={self.clock})"


@dataclass(frozen=True)
class Digitizer:
    """Static description of a digitizer, resolved once from its type tag."""

    type: str
    branch_name: str
    n_channels: int
    trace_length: int

    @classmethod
    def from_config(cls, conf: DigitizerConfig) -> Digitizer:
        return cls(conf.type, conf.branch_name, conf.n_channels, conf.trace_length)

    @classmethod
    def from_type(
        cls,
        dig_type: str,
        branch_name: str,
        n_channels: int = None,
        trace_length: int = None,
    ) -> Digitizer:
        known = DIGITIZER_TYPES.get(dig_type)
        if known is None and (n_channels is None or trace_length is None):
            raise ConfigurationError(
                f"unknown digitizer type {dig_type}: give n_channels and trace_length"
            )
        if known is not None:
            n_channels = known[0] if n_channels is None else n_channels
            trace_length = known[1] if trace_length is None else trace_length
        return cls(dig_type, branch_name, int(n_channels), int(trace_length))


class DigitizerEvent:
    """The traces of all channels of one digitizer for one event.

    Exposes index-based access to the samples; this is all the pulse
    processing needs from the hardware.
    """

    __slots__ = ("digitizer", "_traces", "system_clock", "device_clock")

    def __init__(
        self,
        digitizer: Digitizer,
        traces: np.ndarray,
        system_clock: int = 0,
        device_clock: np.ndarray = None,
    ) -> None:
        traces = np.array(traces)
        if traces.shape != (digitizer.n_channels, digitizer.trace_length):
            raise ConfigurationError(
                f"traces of shape {traces.shape} do not match digitizer "
                f"{digitizer.branch_name} ({digitizer.n_channels} x {digitizer.trace_length})"
            )
        traces.flags.writeable = False
        self.digitizer = digitizer
        self._traces = traces
        self.system_clock = int(system_clock)
        if device_clock is None:
            device_clock = np.full(digitizer.n_channels, self.system_clock)
        self.device_clock = np.asarray(device_clock)

    def trace_length(self) -> int:
        return self.digitizer.trace_length

    def sample_at(self, channel: int, index: int) -> float:
        if not 0 <= channel < self.digitizer.n_channels:
            raise IndexError(f"channel {channel} does not exist")
        return self.trace(channel).sample_at(index)

    def trace(self, channel: int) -> RawTrace:
        return RawTrace(self._traces[channel], self.device_clock[channel])
