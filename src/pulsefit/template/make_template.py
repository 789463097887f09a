"""
High-level routine building a detector's template from raw calibration data.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Mapping

import numpy as np

from ..config import load_template_build_config
from ..raw import Digitizer, read_channel_traces
from .build_template import TemplateBuild, build_template
from .store import write_template

log = logging.getLogger(__name__)


def make_template(
    raw_file: str,
    outfile: str | Path,
    detector_name: str,
    analysis_config: str | Path | Mapping,
    template_config: str | Path | Mapping,
    n_max: int = None,
    overwrite: bool = False,
) -> TemplateBuild:
    """Build the template of one detector and write it to a template store.

    Parameters
    ----------
    raw_file
        HDF5 raw file holding single-pulse calibration events.
    outfile
        HDF5 template store to write to.
    detector_name
        detector whose channel is read. The template is stored under the
        detector's ``template_name``.
    analysis_config
        pulse analysis configuration (file name or dictionary), providing
        the digitizer, channel, polarity, template length and buffer.
    template_config
        template-building settings (file name or dictionary), see
        :func:`~.config.load_template_build_config`.
    n_max
        maximum number of calibration events to read.
    overwrite
        replace an existing template of the same name.

    Returns
    -------
    build
        the template and its build diagnostics.
    """
    t_start = time.time()
    build_conf, dig_conf, det = load_template_build_config(
        template_config, analysis_config, detector_name
    )
    digitizer = Digitizer.from_config(dig_conf)

    traces = read_channel_traces(raw_file, digitizer, build_conf.channel, n_max=n_max)
    log.info(
        f"read {len(traces)} calibration traces of {detector_name} "
        f"(channel {build_conf.channel} of {digitizer.branch_name})"
    )

    build = build_template(np.asarray(traces, dtype=np.float64), build_conf)
    write_template(
        build.template, outfile, det.template_name, build=build, overwrite=overwrite
    )

    log.info(f"template of {detector_name} built in {time.time() - t_start:.1f} s")
    return build
