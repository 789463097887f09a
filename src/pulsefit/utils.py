from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping

import yaml

from .errors import ConfigurationError

log = logging.getLogger(__name__)


def getenv_bool(name: str, default: bool = False) -> bool:
    """Get environment value as a boolean, returning True for 1, t and true
    (caps-insensitive), and False for any other value and default if undefined.
    """
    val = os.getenv(name)
    if not val:
        return default
    return val.lower() in ("1", "t", "true")


__file_extensions__ = {"json": [".json"], "yaml": [".yaml", ".yml"]}


def load_dict(source: str | Path | Mapping, ftype: str | None = None) -> dict:
    """Load a JSON or YAML configuration file as a Python dict.

    Mappings are passed through (as a shallow copy), so callers can accept
    either a file name or an already parsed configuration.

    Parameters
    ----------
    source
        name of the file to read, or a mapping.
    ftype
        ``json`` or ``yaml``. If ``None``, deduced from the file extension.
    """
    if isinstance(source, Mapping):
        return dict(source)

    fname = Path(source)
    if not fname.is_file():
        raise ConfigurationError(f"configuration file {fname} does not exist")

    if ftype is None:
        for _ftype, exts in __file_extensions__.items():
            if fname.suffix in exts:
                ftype = _ftype

    log.debug(f"loading {ftype} dict from: {fname}")

    with fname.open() as f:
        if ftype == "json":
            return json.load(f)
        if ftype == "yaml":
            return yaml.safe_load(f)

    raise ConfigurationError(f"unsupported file format {ftype} for {fname}")
