"""
This module provides the high-level routine running the pulse analysis on a
raw file, and the HDF5 sink of its summaries.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import h5py
import numpy as np
from tqdm import tqdm

from ..config import AnalysisConfig, FitConfiguration, load_analysis_config
from ..errors import ConfigurationError
from ..fit import TemplateFitter
from ..raw import Digitizer, iterate_raw_events
from ..template import Template, read_template
from .pulse_processor import PulseSummary, fit_pulse

log = logging.getLogger(__name__)


@dataclass
class Detector:
    """A detector channel bound to its digitizer, template and fitter."""

    conf: FitConfiguration
    digitizer: Digitizer
    template: Template
    fitter: TemplateFitter


def bind_detectors(config: AnalysisConfig) -> list[Detector]:
    """Load the template of every configured detector and set up its fitter.

    Templates are read from ``<template_dir>/<template_file>`` under the
    detector's ``template_name``. A template file shared by several
    detectors is read once per template name.

    Raises
    ------
    ConfigurationError
        if a template file is not configured, or a template domain does not
        contain the pulse peak.
    """
    templates = {}
    detectors = []
    for dig_conf in config.digitizers:
        digitizer = Digitizer.from_config(dig_conf)
        for conf in dig_conf.detectors:
            if not conf.template_file:
                raise ConfigurationError("no template_file configured", detector=conf.name)
            path = Path(config.template_dir) / conf.template_file
            key = (str(path), conf.template_name)
            if key not in templates:
                templates[key] = read_template(path, conf.template_name)
            template = templates[key]
            if not template.lo_offset < 0 < template.hi_offset:
                raise ConfigurationError(
                    f"template domain [{template.lo_offset}, {template.hi_offset}] "
                    "does not contain the pulse peak",
                    detector=conf.name,
                )
            fitter = TemplateFitter(
                template,
                tolerance=config.fitter.tolerance,
                max_calls=config.fitter.max_calls,
            )
            detectors.append(Detector(conf, digitizer, template, fitter))
            log.debug(f"bound {conf.name} to {template} ({path})")
    return detectors


class SummaryWriter:
    """Summary sink collecting one :class:`.PulseSummary` per detector per event.

    The summaries are written to one structured dataset per detector, with
    the fields of :class:`.PulseSummary` in order, plus an ``entry`` dataset
    holding the event indices. Records are buffered in memory and appended
    to resizable datasets on every :meth:`flush`.

    Parameters
    ----------
    outfile
        HDF5 file to write to. Existing datasets of the same detectors are
        replaced on the first flush.
    detectors
        names of the detectors.
    group
        HDF5 group the datasets are written into.
    """

    def __init__(self, outfile: str | Path, detectors: list[str], group: str = "pulses"):
        self.outfile = outfile
        self.group = group
        self.detectors = list(detectors)
        self.n_written = 0
        self._clear()

    def _clear(self) -> None:
        self.entries = []
        self.records = {name: [] for name in self.detectors}

    def fill(self, entry: int, summaries: Mapping[str, PulseSummary]) -> None:
        self.entries.append(entry)
        for name in self.detectors:
            self.records[name].append(summaries[name].as_record())

    def __len__(self) -> int:
        return self.n_written + len(self.entries)

    def flush(self) -> None:
        """Append the buffered records to the output file."""
        n_new = len(self.entries)
        if n_new == 0 and self.n_written > 0:
            return

        columns = {"entry": np.array(self.entries, dtype=np.int64)}
        for name in self.detectors:
            columns[name] = np.array(self.records[name], dtype=PulseSummary.dtype())

        with h5py.File(self.outfile, "a") as f:
            group = f.require_group(self.group)
            for name, data in columns.items():
                if self.n_written == 0:
                    if name in group:
                        del group[name]
                    group.create_dataset(
                        name, data=data, maxshape=(None,), chunks=True
                    )
                else:
                    ds = group[name]
                    ds.resize((self.n_written + n_new,))
                    ds[self.n_written :] = data

        self.n_written += n_new
        self._clear()
        log.debug(f"appended {n_new} events to {self.outfile}")

    def write(self) -> None:
        """Flush the remaining records."""
        self.flush()
        log.info(f"wrote {len(self)} events to {self.outfile}")


def read_summaries(outfile: str | Path, group: str = "pulses") -> dict[str, np.ndarray]:
    """Read back the datasets written by :class:`SummaryWriter`."""
    with h5py.File(outfile, "r") as f:
        return {name: ds[()] for name, ds in f[group].items()}


def analyze_pulses(
    raw_file: str,
    config: str | Path | Mapping | AnalysisConfig,
    outfile: str | Path = None,
    n_max: int = None,
    plot_dir: str = None,
    buffer_len: int = 1024,
) -> dict[str, np.ndarray]:
    """Run the pulse analysis on every event of a raw file.

    Parameters
    ----------
    raw_file
        HDF5 raw file to read from.
    config
        analysis configuration, see :func:`~.config.load_analysis_config`.
    outfile
        name of the HDF5 file to write the summaries to. If ``None``, a file
        in the same directory as `raw_file`, with `_pulses` appended to its
        name, is used.
    n_max
        maximum number of events to process.
    plot_dir
        directory in which the fits of detectors with the ``draw`` flag are
        saved. If ``None``, no fit is drawn.
    buffer_len
        number of events read from disk at a time.

    Returns
    -------
    summaries
        the summary records of every detector, keyed by detector name.

    Notes
    -----
    When the peak of a channel falls outside the configured peak gate, the
    channel keeps the summary of the previous event (all NaN before the
    first accepted event).
    """
    t_start = time.time()
    if not isinstance(config, AnalysisConfig):
        config = load_analysis_config(config)
    if outfile is None:
        outfile = os.path.splitext(raw_file)[0] + "_pulses.h5"

    detectors = bind_detectors(config)
    digitizers = list({det.digitizer.branch_name: det.digitizer for det in detectors}.values())
    writer = SummaryWriter(outfile, [det.conf.name for det in detectors])
    summaries = {det.conf.name: PulseSummary() for det in detectors}
    n_gated = {det.conf.name: 0 for det in detectors}

    plot_fit = None
    if plot_dir is not None and any(det.conf.draw for det in detectors):
        # importing pulsefit.vis switches matplotlib to the agg backend
        from ..vis import plot_fit

    progress_bar = None
    if log.getEffectiveLevel() >= logging.INFO:
        progress_bar = tqdm(desc=f"Processing {raw_file}", delay=2, unit=" events")

    for entry, events in iterate_raw_events(
        raw_file, digitizers, config.start_entry, n_max, buffer_len
    ):
        for det in detectors:
            event = events[det.digitizer.branch_name]
            trace = event.trace(det.conf.channel)
            try:
                fit = fit_pulse(trace.samples, det.conf, det.fitter, config.fitter)
            except ConfigurationError as e:
                e.entry = entry
                raise e
            if fit is None:
                n_gated[det.conf.name] += 1
                continue
            summaries[det.conf.name] = fit.summary
            if det.conf.draw and plot_fit is not None:
                plot_fit(
                    det.fitter,
                    fit.result,
                    fit.window,
                    fit.window_start,
                    name=f"{det.conf.name}_{entry}",
                    plot_dir=plot_dir,
                )
        writer.fill(entry, summaries)
        if len(writer.entries) >= buffer_len:
            writer.flush()
        if progress_bar is not None:
            progress_bar.update(1)

    if progress_bar is not None:
        progress_bar.close()

    for name, n in n_gated.items():
        if n > 0:
            log.info(f"{name}: {n} events outside the peak gate")

    writer.write()
    log.info(f"processed {len(writer)} events in {time.time() - t_start:.1f} s")
    return read_summaries(outfile)
