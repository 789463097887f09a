"""
Raw digitizer traces: the trace value, the digitizer capability used to
access channels of an event, and the HDF5 raw-trace source.
"""

from .raw_source import iterate_raw_events, read_channel_traces, write_raw_events
from .raw_trace import Digitizer, DigitizerEvent, RawTrace

__all__ = [
    "Digitizer",
    "DigitizerEvent",
    "RawTrace",
    "iterate_raw_events",
    "read_channel_traces",
    "write_raw_events",
]
