import os
import subprocess
import sys

import numpy as np
import pytest

from pulsefit.config import load_analysis_config
from pulsefit.errors import ConfigurationError, TemplateError
from pulsefit.pulses import (
    PulseSummary,
    SummaryWriter,
    analyze_pulses,
    bind_detectors,
    read_summaries,
)
from pulsefit.raw import write_raw_events
from pulsefit.template import (
    Template,
    list_templates,
    make_template,
    read_template,
    write_template,
)


def analysis_config(template_dir, n_channels=2, trace_length=64, channel=1, **det):
    return {
        "template_dir": str(template_dir),
        "default_detector": {
            "fit_length": 30,
            "peak_index": 10,
            "wiggle_room": 2,
            "neg_polarity": False,
            "template_length": 24,
            "template_buffer": 8,
        },
        "fitter": {"peak_gate": [100, 4095]},
        "digitizers": [
            {
                "type": "sim",
                "branch_name": "dig0",
                "n_channels": n_channels,
                "trace_length": trace_length,
                "detectors": [
                    {
                        "name": "det0",
                        "channel": channel,
                        "template_file": "templates.h5",
                        **det,
                    }
                ],
            }
        ],
    }


@pytest.fixture
def raw_setup(tmp_path, gauss_template, make_trace):
    write_template(gauss_template, tmp_path / "templates.h5", "det0")

    rng = np.random.default_rng(7)
    traces = np.zeros((3, 2, 64))
    traces[:, 0] = rng.normal(300, 3, (3, 64))
    traces[0, 1] = make_trace(64, [30.3], [5000], 1500)
    traces[1, 1] = 50
    traces[2, 1] = make_trace(64, [29.7], [4000], 1000)
    raw_file = str(tmp_path / "run.h5")
    write_raw_events(raw_file, "dig0", np.round(traces))
    return raw_file, tmp_path


def test_analyze_pulses(raw_setup):
    raw_file, tmp_path = raw_setup
    summaries = analyze_pulses(raw_file, analysis_config(tmp_path))

    assert os.path.exists(tmp_path / "run_pulses.h5")
    assert summaries["entry"].tolist() == [0, 1, 2]

    det0 = summaries["det0"]
    assert det0.dtype == PulseSummary.dtype()
    assert det0["energy"][0] == pytest.approx(5000, rel=1e-3)
    assert det0["time"][0] == pytest.approx(30.3, abs=0.02)
    assert det0["baseline"][0] == pytest.approx(1500, abs=0.5)
    assert det0["energy"][2] == pytest.approx(4000, rel=1e-3)
    assert det0["time"][2] == pytest.approx(29.7, abs=0.02)
    assert np.all(det0["successful_fit"][[0, 2]])
    assert np.all(det0["fit_converged"][[0, 2]])

    # the flat event is gated and repeats the previous summary
    for name in det0.dtype.names:
        assert det0[name][1] == det0[name][0]


def test_analyze_pulses_draw(raw_setup):
    raw_file, tmp_path = raw_setup
    plot_dir = tmp_path / "plots"
    outfile = tmp_path / "out.h5"
    config = load_analysis_config(analysis_config(tmp_path, draw=True))

    summaries = analyze_pulses(
        raw_file, config, outfile=outfile, plot_dir=str(plot_dir), buffer_len=2
    )
    assert os.path.exists(outfile)
    assert len(summaries["det0"]) == 3
    assert sorted(os.listdir(plot_dir)) == ["det0_0.pdf", "det0_2.pdf"]


def test_analyze_pulses_n_max(raw_setup):
    raw_file, tmp_path = raw_setup
    config = analysis_config(tmp_path)
    config["start_entry"] = 1
    summaries = analyze_pulses(raw_file, config, n_max=1)

    # no accepted event yet: the summary is empty
    assert summaries["entry"].tolist() == [1]
    assert np.isnan(summaries["det0"]["energy"][0])
    assert not summaries["det0"]["successful_fit"][0]


def test_window_overrun_names_the_entry(tmp_path, gauss_template, make_trace):
    write_template(gauss_template, tmp_path / "templates.h5", "det0")
    traces = np.zeros((2, 2, 64))
    traces[0, 1] = make_trace(64, [30.3], [5000], 1500)
    traces[1, 1] = make_trace(64, [5.3], [5000], 1500)
    raw_file = str(tmp_path / "run.h5")
    write_raw_events(raw_file, "dig0", np.round(traces))

    with pytest.raises(ConfigurationError) as e:
        analyze_pulses(raw_file, analysis_config(tmp_path))
    assert e.value.entry == 1
    assert e.value.detector == "det0"


def test_bind_detectors(tmp_path, gauss_template, pulse_shape):
    config = load_analysis_config(analysis_config(tmp_path))
    with pytest.raises(TemplateError):
        bind_detectors(config)

    write_template(gauss_template, tmp_path / "templates.h5", "det0")
    (det,) = bind_detectors(config)
    assert det.conf.name == "det0"
    assert det.digitizer.branch_name == "dig0"
    assert det.template.lo_offset == gauss_template.lo_offset
    assert det.fitter.template is det.template

    late = Template.from_function(pulse_shape, 0.5, 10.5, n_knots=101)
    write_template(late, tmp_path / "templates.h5", "late")
    config = load_analysis_config(analysis_config(tmp_path, template_name="late"))
    with pytest.raises(ConfigurationError):
        bind_detectors(config)

    config = analysis_config(tmp_path)
    del config["digitizers"][0]["detectors"][0]["template_file"]
    with pytest.raises(ConfigurationError):
        bind_detectors(load_analysis_config(config))


def test_summary_writer(tmp_path):
    outfile = tmp_path / "summaries.h5"
    writer = SummaryWriter(outfile, ["a", "b"])
    writer.fill(3, {"a": PulseSummary(energy=1.0), "b": PulseSummary(energy=2.0)})
    writer.fill(4, {"a": PulseSummary(energy=3.0), "b": PulseSummary(chi2=5.0)})
    assert len(writer) == 2
    writer.flush()
    assert writer.entries == []
    assert len(writer) == 2

    writer.fill(5, {"a": PulseSummary(energy=4.0), "b": PulseSummary()})
    assert len(writer) == 3
    writer.write()

    summaries = read_summaries(outfile)
    assert sorted(summaries) == ["a", "b", "entry"]
    assert summaries["entry"].tolist() == [3, 4, 5]
    assert summaries["a"]["energy"].tolist() == [1.0, 3.0, 4.0]
    assert summaries["b"]["chi2"][1] == 5.0
    assert np.isnan(summaries["b"]["energy"][2])

    # a new writer replaces the datasets
    writer = SummaryWriter(outfile, ["a"])
    writer.fill(0, {"a": PulseSummary()})
    writer.write()
    summaries = read_summaries(outfile)
    assert summaries["entry"].tolist() == [0]
    assert len(summaries["a"]) == 1


def test_make_template_and_analyze(tmp_path, make_cal_traces):
    traces = make_cal_traces(600, seed=11)
    raw_file = str(tmp_path / "cal.h5")
    write_raw_events(raw_file, "dig0", traces[:, None, :])

    config = analysis_config(tmp_path, n_channels=1, trace_length=80, channel=0)
    template_config = {
        "baseline_fit_length": 10,
        "min_peak": 350,
        "n_time_bins": 5,
        "n_bins_pseudo_time": 50,
    }
    build = make_template(
        raw_file, tmp_path / "templates.h5", "det0", config, template_config
    )

    assert build.n_good > 550
    assert list_templates(tmp_path / "templates.h5") == ["det0"]
    template = read_template(tmp_path / "templates.h5", "det0")
    assert np.array_equal(template.mean_knots, build.template.mean_knots)
    assert abs(template.knots[np.argmax(template.mean_knots)]) < 0.5

    with pytest.raises(TemplateError):
        make_template(raw_file, tmp_path / "templates.h5", "det0", config, template_config)

    # the calibration pulses themselves are fit with their own template
    summaries = analyze_pulses(raw_file, config, n_max=50)
    det0 = summaries["det0"]
    assert np.mean(det0["successful_fit"]) > 0.9
    assert np.median(det0["energy"]) == pytest.approx(1000, rel=0.05)
    assert np.median(det0["baseline"]) == pytest.approx(200, abs=2)

    rng = np.random.default_rng(11)
    true_times = 40 + rng.uniform(-0.5, 0.5, 600)[:50]
    assert np.std(det0["time"] - true_times) < 0.15


def test_matplotlib_backend_untouched_on_import():
    code = (
        "import sys, pulsefit, pulsefit.pulses; "
        "assert 'pulsefit.vis.fit_display' not in sys.modules"
    )
    subprocess.check_call([sys.executable, "-c", code])
