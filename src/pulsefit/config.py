"""
Configuration values for template building and pulse analysis.

Configuration files are JSON or YAML. Detector entries inherit any key they
do not set from the ``default_detector`` block. Every value produced here is
a frozen dataclass: it is resolved and validated once, then only read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigurationError
from .utils import load_dict

log = logging.getLogger(__name__)

# known digitizer types: (number of channels, samples per trace)
DIGITIZER_TYPES = {
    "caen1742": (32, 1024),
}

# a two-pulse fit has five free parameters and needs one more sample
MIN_FIT_LENGTH = 6


def value_from_detector_or_default(
    key: str, detector: Mapping[str, Any], defaults: Mapping[str, Any]
) -> Any:
    """Look `key` up in the detector block, falling back to the defaults."""
    if key in detector:
        return detector[key]
    if key in defaults:
        return defaults[key]
    raise ConfigurationError(
        f"'{key}' is set neither for the detector nor in default_detector",
        detector=detector.get("name"),
    )


@dataclass(frozen=True)
class FitConfiguration:
    """Per-channel fit configuration.

    Attributes
    ----------
    name
        detector name, also the default name of its template in the store.
    channel
        digitizer channel index.
    fit_length
        number of samples in the fit window.
    peak_index
        expected position of the peak inside the fit window.
    wiggle_room
        a single-pulse fit is accepted only if its time is closer than this
        to `peak_index`.
    neg_polarity
        pulses are negative-going.
    draw
        render every fit of this channel (display only).
    template_length, template_buffer
        samples in the template, and samples of it preceding the peak.
    template_file, template_name
        where the channel's template is stored.
    """

    name: str
    channel: int
    fit_length: int
    peak_index: int
    wiggle_room: float
    neg_polarity: bool
    draw: bool = False
    template_length: int = 0
    template_buffer: int = 0
    template_file: str | None = None
    template_name: str | None = None

    @property
    def sign(self) -> float:
        """``-1`` for negative-going pulses, ``1`` otherwise."""
        return -1.0 if self.neg_polarity else 1.0

    def validate(self, trace_length: int, n_channels: int | None = None) -> None:
        """Check the window geometry against the digitizer.

        Raises
        ------
        ConfigurationError
            if the fit window cannot fit in a trace or leaves the peak
            without neighbours.
        """
        problems = []
        if self.fit_length < MIN_FIT_LENGTH:
            problems.append(
                f"fit_length={self.fit_length} must be at least {MIN_FIT_LENGTH} "
                "to allow two-pulse fits"
            )
        if self.fit_length > trace_length:
            problems.append(
                f"fit_length={self.fit_length} exceeds the trace length {trace_length}"
            )
        if not 1 <= self.peak_index <= self.fit_length - 2:
            problems.append(
                f"peak_index={self.peak_index} must lie in [1, fit_length - 2]"
            )
        if self.wiggle_room < 0:
            problems.append(f"wiggle_room={self.wiggle_room} must not be negative")
        if self.channel < 0 or (n_channels is not None and self.channel >= n_channels):
            problems.append(f"channel={self.channel} does not exist on the digitizer")
        if problems:
            raise ConfigurationError("; ".join(problems), detector=self.name)

    @classmethod
    def from_dict(
        cls, detector: Mapping[str, Any], defaults: Mapping[str, Any] = None
    ) -> FitConfiguration:
        defaults = {} if defaults is None else defaults
        if "name" not in detector or "channel" not in detector:
            raise ConfigurationError("every detector needs a name and a channel")

        def get(key, default=None):
            if default is not None and key not in detector and key not in defaults:
                return default
            return value_from_detector_or_default(key, detector, defaults)

        return cls(
            name=str(detector["name"]),
            channel=int(detector["channel"]),
            fit_length=int(get("fit_length")),
            peak_index=int(get("peak_index")),
            wiggle_room=float(get("wiggle_room")),
            neg_polarity=bool(get("neg_polarity")),
            draw=bool(get("draw", False)),
            template_length=int(get("template_length", 0)),
            template_buffer=int(get("template_buffer", 0)),
            template_file=get("template_file", ""),
            template_name=get("template_name", detector["name"]),
        )


@dataclass(frozen=True)
class FitterSettings:
    """Tuning constants of the fitting engine and of the retry policy.

    The default two-pulse thresholds and ladders are the engine's built-in
    values; they can be overridden through the ``fitter`` configuration
    block.
    """

    tolerance: float = 1e-4
    max_calls: int = 2000
    single_pulse_offsets: tuple[int, ...] = (0, 1, -1)
    two_pulse_chi2_threshold: float = 1000.0
    two_pulse_retry_chi2_threshold: float = 5000.0
    two_pulse_offsets: tuple[tuple[int, int], ...] = (
        (-2, 1),
        (-1, 1),
        (-2, 2),
        (-5, 0),
        (0, 5),
        (-10, 0),
        (0, 10),
    )
    peak_gate: tuple[float, float] = (0.0, 4095.0)

    def __post_init__(self) -> None:
        if self.two_pulse_retry_chi2_threshold < self.two_pulse_chi2_threshold:
            raise ConfigurationError(
                "two_pulse_retry_chi2_threshold must not be below two_pulse_chi2_threshold"
            )
        if self.peak_gate[0] > self.peak_gate[1]:
            raise ConfigurationError(f"invalid peak_gate {self.peak_gate}")
        if len(self.single_pulse_offsets) == 0:
            raise ConfigurationError("single_pulse_offsets must not be empty")

    @classmethod
    def from_dict(cls, conf: Mapping[str, Any] | None) -> FitterSettings:
        if not conf:
            return cls()
        unknown = set(conf) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"unknown fitter settings {sorted(unknown)}")
        kwargs = dict(conf)
        if "single_pulse_offsets" in kwargs:
            kwargs["single_pulse_offsets"] = tuple(
                int(o) for o in kwargs["single_pulse_offsets"]
            )
        if "two_pulse_offsets" in kwargs:
            kwargs["two_pulse_offsets"] = tuple(
                (int(a), int(b)) for a, b in kwargs["two_pulse_offsets"]
            )
        if "peak_gate" in kwargs:
            kwargs["peak_gate"] = tuple(float(g) for g in kwargs["peak_gate"])
        return cls(**kwargs)


@dataclass(frozen=True)
class DigitizerConfig:
    type: str
    branch_name: str
    n_channels: int
    trace_length: int
    detectors: tuple[FitConfiguration, ...] = ()


@dataclass(frozen=True)
class AnalysisConfig:
    template_dir: Path
    start_entry: int = 0
    fitter: FitterSettings = field(default_factory=FitterSettings)
    digitizers: tuple[DigitizerConfig, ...] = ()

    @property
    def detectors(self) -> list[FitConfiguration]:
        return [det for dig in self.digitizers for det in dig.detectors]

    def find_detector(self, name: str) -> tuple[DigitizerConfig, FitConfiguration]:
        for dig in self.digitizers:
            for det in dig.detectors:
                if det.name == name:
                    return dig, det
        raise ConfigurationError(f"{name} is not in the configuration")


def _digitizer_geometry(dig: Mapping[str, Any]) -> tuple[int, int]:
    dig_type = dig.get("type")
    if dig_type in DIGITIZER_TYPES:
        n_channels, trace_length = DIGITIZER_TYPES[dig_type]
    elif "trace_length" in dig and "n_channels" in dig:
        n_channels, trace_length = 0, 0
    else:
        raise ConfigurationError(
            f"unknown digitizer type {dig_type}: trace_length and n_channels are needed"
        )
    return (
        int(dig.get("n_channels", n_channels)),
        int(dig.get("trace_length", trace_length)),
    )


def load_analysis_config(config: str | Path | Mapping) -> AnalysisConfig:
    """Resolve and validate a pulse analysis configuration.

    Parameters
    ----------
    config
        name of a JSON/YAML file, or the already parsed dictionary. See the
        package documentation for its layout.

    Raises
    ------
    ConfigurationError
        on missing keys or on a window geometry that does not fit the
        digitizer traces.
    """
    conf = load_dict(config)
    if "digitizers" not in conf:
        raise ConfigurationError("configuration has no digitizers")

    defaults = conf.get("default_detector", {})
    digitizers = []
    for dig in conf["digitizers"]:
        for key in ("type", "branch_name"):
            if key not in dig:
                raise ConfigurationError(f"digitizer entry is missing '{key}'")
        n_channels, trace_length = _digitizer_geometry(dig)

        detectors = []
        for det in dig.get("detectors", []):
            fit_conf = FitConfiguration.from_dict(det, defaults)
            fit_conf.validate(trace_length, n_channels)
            detectors.append(fit_conf)

        digitizers.append(
            DigitizerConfig(
                type=dig["type"],
                branch_name=dig["branch_name"],
                n_channels=n_channels,
                trace_length=trace_length,
                detectors=tuple(detectors),
            )
        )

    names = [det.name for dig in digitizers for det in dig.detectors]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"detector names are not unique: {names}")

    log.debug(f"configured detectors: {names}")
    return AnalysisConfig(
        template_dir=Path(conf.get("template_dir", ".")),
        start_entry=int(conf.get("start_entry", 0)),
        fitter=FitterSettings.from_dict(conf.get("fitter")),
        digitizers=tuple(digitizers),
    )


@dataclass(frozen=True)
class TemplateBuildConfig:
    """Calibration parameters of the Template Builder.

    Attributes
    ----------
    template_length
        number of samples stacked per calibration trace.
    buffer_zone
        samples before the peak included in the template.
    baseline_fit_length
        samples averaged for the baseline, ending `buffer_zone` samples
        before the peak.
    min_peak
        raw peak value a calibration pulse must reach (must stay below for
        negative polarity).
    neg_polarity
        pulses are negative-going.
    n_bins_pseudo_time
        bins of the pseudo-time histogram behind the real-time map.
    n_time_bins
        template bins per sample.
    n_amplitude_bins
        amplitude bins of the fuzzy template.
    min_bin_count
        template bins with fewer entries skip the Gaussian fit and are
        flagged.
    channel
        digitizer channel of the calibration traces.
    """

    template_length: int
    buffer_zone: int
    baseline_fit_length: int
    min_peak: float
    neg_polarity: bool
    n_bins_pseudo_time: int = 100
    n_time_bins: int = 10
    n_amplitude_bins: int = 1000
    min_bin_count: int = 20
    channel: int = 0

    def __post_init__(self) -> None:
        for key in (
            "template_length",
            "baseline_fit_length",
            "n_bins_pseudo_time",
            "n_time_bins",
            "n_amplitude_bins",
        ):
            if getattr(self, key) < 1:
                raise ConfigurationError(f"{key} must be positive")
        if self.buffer_zone < 0:
            raise ConfigurationError("buffer_zone must not be negative")

    @property
    def sign(self) -> float:
        return -1.0 if self.neg_polarity else 1.0

    @property
    def domain(self) -> tuple[float, float]:
        """Offset range covered by the template."""
        return (
            -0.5 - self.buffer_zone,
            self.template_length - 0.5 - self.buffer_zone,
        )


def load_template_build_config(
    template_config: str | Path | Mapping,
    analysis_config: str | Path | Mapping,
    detector_name: str,
) -> tuple[TemplateBuildConfig, DigitizerConfig, FitConfiguration]:
    """Combine the template-building settings with a detector's configuration.

    The detector supplies the template length, buffer, polarity and channel;
    `template_config` supplies ``n_bins_pseudo_time``, ``n_time_bins``,
    ``baseline_fit_length``, ``min_peak`` and optionally
    ``n_amplitude_bins`` and ``min_bin_count``.
    """
    tconf = load_dict(template_config)
    analysis = load_analysis_config(analysis_config)
    dig, det = analysis.find_detector(detector_name)

    for key in ("baseline_fit_length", "min_peak"):
        if key not in tconf:
            raise ConfigurationError(f"template configuration is missing '{key}'")
    if det.template_length < 1:
        raise ConfigurationError("template_length is not configured", detector=det.name)

    optional = {
        key: tconf[key]
        for key in ("n_bins_pseudo_time", "n_time_bins", "n_amplitude_bins", "min_bin_count")
        if key in tconf
    }
    build_conf = TemplateBuildConfig(
        template_length=det.template_length,
        buffer_zone=det.template_buffer,
        baseline_fit_length=int(tconf["baseline_fit_length"]),
        min_peak=float(tconf["min_peak"]),
        neg_polarity=det.neg_polarity,
        channel=det.channel,
        **{k: int(v) for k, v in optional.items()},
    )
    return build_conf, dig, det
