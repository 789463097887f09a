import json
from pathlib import Path

import pytest
import yaml

from pulsefit.config import (
    FitConfiguration,
    FitterSettings,
    TemplateBuildConfig,
    load_analysis_config,
    load_template_build_config,
)
from pulsefit.errors import ConfigurationError


@pytest.fixture
def analysis_dict():
    return {
        "template_dir": "/tmp/templates",
        "start_entry": 3,
        "default_detector": {
            "template_length": 24,
            "template_buffer": 8,
            "fit_length": 30,
            "peak_index": 10,
            "wiggle_room": 2,
            "neg_polarity": True,
            "draw": False,
        },
        "digitizers": [
            {
                "type": "caen1742",
                "branch_name": "caen_0",
                "detectors": [
                    {"name": "lyso_0", "channel": 3, "template_file": "lyso_0.h5"},
                    {
                        "name": "lyso_1",
                        "channel": 4,
                        "template_file": "lyso_1.h5",
                        "template_name": "lyso",
                        "peak_index": 12,
                        "neg_polarity": False,
                    },
                ],
            }
        ],
    }


def test_default_inheritance(analysis_dict):
    conf = load_analysis_config(analysis_dict)
    assert conf.template_dir == Path("/tmp/templates")
    assert conf.start_entry == 3
    assert conf.fitter == FitterSettings()

    (dig,) = conf.digitizers
    assert (dig.n_channels, dig.trace_length) == (32, 1024)

    lyso_0, lyso_1 = conf.detectors
    assert lyso_0.channel == 3
    assert lyso_0.peak_index == 10
    assert lyso_0.neg_polarity
    assert lyso_0.sign == -1
    assert lyso_0.template_name == "lyso_0"
    assert lyso_0.template_length == 24
    assert lyso_1.peak_index == 12
    assert not lyso_1.neg_polarity
    assert lyso_1.template_name == "lyso"

    assert conf.find_detector("lyso_1") == (dig, lyso_1)
    with pytest.raises(ConfigurationError):
        conf.find_detector("nai_0")


def test_configuration_is_frozen(analysis_dict):
    conf = load_analysis_config(analysis_dict)
    with pytest.raises(AttributeError):
        conf.detectors[0].fit_length = 10


def test_missing_key(analysis_dict):
    del analysis_dict["default_detector"]["wiggle_room"]
    with pytest.raises(ConfigurationError, match="wiggle_room") as e:
        load_analysis_config(analysis_dict)
    assert e.value.detector == "lyso_0"
    assert "Thrown for detector lyso_0" in str(e.value)

    with pytest.raises(ConfigurationError):
        load_analysis_config({"template_dir": "."})


@pytest.mark.parametrize(
    "override",
    [
        {"fit_length": 2000},
        {"fit_length": 2},
        {"fit_length": 3, "peak_index": 1},
        {"fit_length": 5, "peak_index": 2},
        {"peak_index": 0},
        {"peak_index": 29},
        {"wiggle_room": -1},
        {"channel": 32},
    ],
)
def test_window_geometry_is_validated(analysis_dict, override):
    analysis_dict["digitizers"][0]["detectors"][0].update(override)
    with pytest.raises(ConfigurationError):
        load_analysis_config(analysis_dict)


def test_unknown_digitizer(analysis_dict):
    analysis_dict["digitizers"][0]["type"] = "sim"
    with pytest.raises(ConfigurationError):
        load_analysis_config(analysis_dict)

    analysis_dict["digitizers"][0].update({"n_channels": 8, "trace_length": 64})
    conf = load_analysis_config(analysis_dict)
    assert conf.digitizers[0].trace_length == 64


def test_duplicate_detector_names(analysis_dict):
    analysis_dict["digitizers"][0]["detectors"][1]["name"] = "lyso_0"
    with pytest.raises(ConfigurationError):
        load_analysis_config(analysis_dict)


def test_fitter_settings(analysis_dict):
    analysis_dict["fitter"] = {
        "two_pulse_chi2_threshold": 500,
        "two_pulse_offsets": [[-1, 1]],
        "peak_gate": [100, 3000],
    }
    fitter = load_analysis_config(analysis_dict).fitter
    assert fitter.two_pulse_chi2_threshold == 500
    assert fitter.two_pulse_retry_chi2_threshold == 5000
    assert fitter.two_pulse_offsets == ((-1, 1),)
    assert fitter.peak_gate == (100.0, 3000.0)
    assert fitter.single_pulse_offsets == (0, 1, -1)

    analysis_dict["fitter"] = {"two_pulse_threshold": 500}
    with pytest.raises(ConfigurationError):
        load_analysis_config(analysis_dict)

    with pytest.raises(ConfigurationError):
        FitterSettings(two_pulse_chi2_threshold=6000)
    with pytest.raises(ConfigurationError):
        FitterSettings(peak_gate=(10, 0))


def test_config_files(tmp_path, analysis_dict):
    json_file = tmp_path / "conf.json"
    json_file.write_text(json.dumps(analysis_dict))
    yaml_file = tmp_path / "conf.yaml"
    yaml_file.write_text(yaml.safe_dump(analysis_dict))

    assert load_analysis_config(str(json_file)) == load_analysis_config(yaml_file)


def test_fit_configuration_validate():
    conf = FitConfiguration("det", 0, fit_length=30, peak_index=10, wiggle_room=2, neg_polarity=False)
    conf.validate(trace_length=30)
    with pytest.raises(ConfigurationError):
        conf.validate(trace_length=29)


def test_template_build_config(analysis_dict):
    template_conf = {
        "baseline_fit_length": 10,
        "min_peak": 3500,
        "n_time_bins": 5,
        "n_bins_pseudo_time": 50,
    }
    build_conf, dig, det = load_template_build_config(template_conf, analysis_dict, "lyso_0")

    assert build_conf.template_length == 24
    assert build_conf.buffer_zone == 8
    assert build_conf.neg_polarity
    assert build_conf.sign == -1
    assert build_conf.channel == 3
    assert build_conf.n_time_bins == 5
    assert build_conf.min_bin_count == 20
    assert build_conf.domain == (-8.5, 15.5)
    assert dig.branch_name == "caen_0"
    assert det.name == "lyso_0"

    del template_conf["min_peak"]
    with pytest.raises(ConfigurationError):
        load_template_build_config(template_conf, analysis_dict, "lyso_0")

    with pytest.raises(ConfigurationError):
        TemplateBuildConfig(
            template_length=0, buffer_zone=0, baseline_fit_length=10, min_peak=0, neg_polarity=False
        )


@pytest.mark.parametrize("fit_length", [3, 4, 5])
def test_fit_length_too_short_for_two_pulses(fit_length):
    conf = FitConfiguration(
        "det", 0, fit_length=fit_length, peak_index=1, wiggle_room=2, neg_polarity=False
    )
    with pytest.raises(ConfigurationError, match="two-pulse"):
        conf.validate(trace_length=64)

    conf = FitConfiguration(
        "det", 0, fit_length=6, peak_index=1, wiggle_room=2, neg_polarity=False
    )
    conf.validate(trace_length=64)
