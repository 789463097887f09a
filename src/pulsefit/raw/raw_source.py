"""
HDF5 raw-trace source.

A raw file holds one group per digitizer branch with the datasets

* ``trace``: unsigned samples, shape ``(n_events, n_channels, n_samples)``
* ``system_clock``: one value per event
* ``device_clock`` (optional): shape ``(n_events, n_channels)``
"""

from __future__ import annotations

import logging
from typing import Iterator, Sequence

import h5py
import numpy as np

from ..errors import ConfigurationError
from .raw_trace import Digitizer, DigitizerEvent

log = logging.getLogger(__name__)


def _open_branch(f: h5py.File, digitizer: Digitizer) -> h5py.Group:
    if digitizer.branch_name not in f:
        raise ConfigurationError(
            f"branch {digitizer.branch_name} not found in {f.filename}"
        )
    group = f[digitizer.branch_name]
    shape = group["trace"].shape
    if shape[1:] != (digitizer.n_channels, digitizer.trace_length):
        raise ConfigurationError(
            f"branch {digitizer.branch_name} holds traces of shape {shape[1:]}, "
            f"expected ({digitizer.n_channels}, {digitizer.trace_length})"
        )
    return group


def iterate_raw_events(
    raw_file: str,
    digitizers: Sequence[Digitizer],
    start_entry: int = 0,
    n_max: int = None,
    buffer_len: int = 1024,
) -> Iterator[tuple[int, dict[str, DigitizerEvent]]]:
    """Iterate over the events of a raw file.

    Parameters
    ----------
    raw_file
        name of the HDF5 raw file.
    digitizers
        digitizers to read. All their branches must hold the same number of
        events.
    start_entry
        first event to read.
    n_max
        maximum number of events to read.
    buffer_len
        number of events read from disk at a time.

    Yields
    ------
    entry, events
        the event index and a mapping from branch name to the digitizer's
        event.
    """
    with h5py.File(raw_file, "r") as f:
        groups = {dig.branch_name: _open_branch(f, dig) for dig in digitizers}
        n_events = {len(g["trace"]) for g in groups.values()}
        if len(n_events) > 1:
            raise ConfigurationError(f"branches of {raw_file} differ in length")
        n_entries = n_events.pop() if n_events else 0

        stop = n_entries if n_max is None else min(n_entries, start_entry + n_max)
        log.debug(f"reading entries {start_entry} to {stop} of {raw_file}")

        for beg in range(start_entry, stop, buffer_len):
            end = min(beg + buffer_len, stop)
            chunks = {}
            for dig in digitizers:
                g = groups[dig.branch_name]
                device = g["device_clock"][beg:end] if "device_clock" in g else None
                chunks[dig.branch_name] = (
                    g["trace"][beg:end],
                    g["system_clock"][beg:end],
                    device,
                )
            for i in range(end - beg):
                events = {}
                for dig in digitizers:
                    traces, system_clock, device = chunks[dig.branch_name]
                    events[dig.branch_name] = DigitizerEvent(
                        dig,
                        traces[i],
                        system_clock[i],
                        None if device is None else device[i],
                    )
                yield beg + i, events


def read_channel_traces(
    raw_file: str,
    digitizer: Digitizer,
    channel: int,
    start_entry: int = 0,
    n_max: int = None,
) -> np.ndarray:
    """Read every trace of one channel, shape ``(n_events, n_samples)``."""
    if not 0 <= channel < digitizer.n_channels:
        raise ConfigurationError(f"channel {channel} does not exist")
    with h5py.File(raw_file, "r") as f:
        group = _open_branch(f, digitizer)
        stop = None if n_max is None else start_entry + n_max
        return group["trace"][start_entry:stop, channel, :]


def write_raw_events(
    raw_file: str,
    branch_name: str,
    traces: np.ndarray,
    system_clock: np.ndarray = None,
    device_clock: np.ndarray = None,
    overwrite: bool = False,
) -> None:
    """Write the traces of one digitizer branch to a raw file.

    Parameters
    ----------
    traces
        array of shape ``(n_events, n_channels, n_samples)``. Stored as
        ``uint16``.
    system_clock
        one value per event, defaults to the event index.
    device_clock
        optional per channel clock values, shape ``(n_events, n_channels)``.
    overwrite
        replace the branch if it already exists.
    """
    traces = np.asarray(traces)
    if traces.ndim != 3:
        raise ValueError("traces must have shape (n_events, n_channels, n_samples)")
    if system_clock is None:
        system_clock = np.arange(len(traces), dtype=np.uint64)

    with h5py.File(raw_file, "a") as f:
        if branch_name in f:
            if not overwrite:
                raise FileExistsError(f"branch {branch_name} already in {raw_file}")
            del f[branch_name]
        group = f.create_group(branch_name)
        group.create_dataset("trace", data=traces.astype(np.uint16))
        group.create_dataset("system_clock", data=np.asarray(system_clock, dtype=np.uint64))
        if device_clock is not None:
            group.create_dataset(
                "device_clock", data=np.asarray(device_clock, dtype=np.uint64)
            )
