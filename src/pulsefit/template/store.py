"""
HDF5 template store.

Templates are stored by name, one group each::

    <name>/knots          offsets of the spline knots
    <name>/mean           template mean at the knots
    <name>/sigma          template spread at the knots
    <name>/diagnostics/   optional products of the template build

The group attributes ``lo_offset`` and ``hi_offset`` hold the template
domain.
"""

from __future__ import annotations

import logging
from pathlib import Path

import h5py
import numpy as np

from ..errors import TemplateError
from .build_template import TemplateBuild
from .template import Template

log = logging.getLogger(__name__)


def write_template(
    template: Template,
    path: str | Path,
    name: str,
    build: TemplateBuild = None,
    overwrite: bool = False,
) -> None:
    """Write a template to an HDF5 store.

    Parameters
    ----------
    template
        the template to write.
    path
        name of the HDF5 file. Created if missing, other templates in it
        are kept.
    name
        name of the template in the store.
    build
        if given, the diagnostics of the template build are stored along.
    overwrite
        replace an existing template of the same name.
    """
    with h5py.File(path, "a") as f:
        if name in f:
            if not overwrite:
                raise TemplateError(f"template {name} already exists in {path}")
            log.debug(f"overwriting template {name} in {path}")
            del f[name]

        group = f.create_group(name)
        group.attrs["lo_offset"] = template.lo_offset
        group.attrs["hi_offset"] = template.hi_offset
        group.create_dataset("knots", data=template.knots)
        group.create_dataset("mean", data=template.mean_knots)
        group.create_dataset("sigma", data=template.sigma_knots)

        if build is not None:
            diag = group.create_group("diagnostics")
            diag.create_dataset("pseudo_time_hist", data=build.pseudo_time_hist)
            diag.create_dataset("pseudo_time_bins", data=build.pseudo_time_bins)
            diag.create_dataset(
                "real_time_knots", data=np.vstack(build.real_time_knots)
            )
            diag.create_dataset(
                "fuzzy_template", data=build.fuzzy_template, compression="gzip"
            )
            diag.create_dataset("fuzzy_x_bins", data=build.fuzzy_x_bins)
            diag.create_dataset("fuzzy_y_bins", data=build.fuzzy_y_bins)
            diag.create_dataset("bin_counts", data=build.bin_counts)
            diag.create_dataset("low_count", data=build.low_count)
            diag.attrs["n_traces"] = len(build.summaries)
            diag.attrs["n_good"] = build.n_good

    log.info(f"wrote template {name} to {path}")


def read_template(path: str | Path, name: str) -> Template:
    """Load the template `name` from an HDF5 store.

    Raises
    ------
    TemplateError
        if the file or the template does not exist, or the entry is
        malformed.
    """
    if not Path(path).is_file():
        raise TemplateError(f"template file {path} does not exist")

    with h5py.File(path, "r") as f:
        if name not in f:
            raise TemplateError(f"template {name} not found in {path}")
        group = f[name]
        try:
            knots = group["knots"][()]
            mean = group["mean"][()]
            sigma = group["sigma"][()]
            lo = float(group.attrs["lo_offset"])
            hi = float(group.attrs["hi_offset"])
        except KeyError as e:
            raise TemplateError(f"template {name} in {path} is malformed: {e}") from e

    return Template(knots, mean, sigma, lo_offset=lo, hi_offset=hi)


def list_templates(path: str | Path) -> list[str]:
    """Names of the templates in an HDF5 store."""
    with h5py.File(path, "r") as f:
        return sorted(key for key, obj in f.items() if "knots" in obj)
