"""
pulsefit's command line interface utilities.
"""

import argparse
import logging
import sys

import pulsefit
import pulsefit.logging
from pulsefit.config import load_analysis_config
from pulsefit.errors import ConfigurationError
from pulsefit.pulses import analyze_pulses
from pulsefit.template import make_template


def pulsefit_cli(argv=None):
    """pulsefit's command line interface.

    Defines the command line interface (CLI) of the package, which exposes the
    template building and the pulse analysis to the console. This function is
    added to the ``entry_points.console_scripts`` list and defines the
    ``pulsefit`` executable (see ``setuptools``' documentation). To learn more
    about the CLI, have a look at the help section:

    .. code-block:: console

      $ pulsefit --help
      $ pulsefit analyze --help  # help section for a specific sub-command
    """

    parser = argparse.ArgumentParser(
        prog="pulsefit", description="pulsefit's command-line interface"
    )

    # global options
    parser.add_argument(
        "--version", action="store_true", help="""Print pulsefit version and exit"""
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="""Increase the program verbosity""",
    )
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        help="""Increase the program verbosity to maximum""",
    )

    subparsers = parser.add_subparsers()

    add_make_template_parser(subparsers)
    add_analyze_parser(subparsers)

    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 1:
        parser.print_usage(sys.stderr)
        sys.exit(1)

    args = parser.parse_args(argv)

    if args.verbose:
        pulsefit.logging.setup(logging.DEBUG)
    elif args.debug:
        pulsefit.logging.setup(logging.DEBUG, logging.root)
    else:
        pulsefit.logging.setup()

    if args.version:
        print(pulsefit.__version__)  # noqa: T201
        sys.exit()

    if not hasattr(args, "func"):
        parser.print_usage(sys.stderr)
        sys.exit(1)

    args.func(args)


def add_make_template_parser(subparsers):
    """Configure :func:`.template.make_template.make_template` command line interface"""

    parser_mt = subparsers.add_parser(
        "make-template",
        description="""Build the pulse template of one detector from a raw file
                       of single-pulse calibration events""",
    )
    parser_mt.add_argument(
        "raw_file",
        help="""Input raw HDF5 file holding the calibration events""",
    )
    parser_mt.add_argument(
        "--config",
        "-c",
        required=True,
        help="""JSON/YAML file holding the pulse analysis configuration""",
    )
    parser_mt.add_argument(
        "--template-config",
        "-t",
        required=True,
        help="""JSON/YAML file holding the template building settings""",
    )
    parser_mt.add_argument(
        "--detector",
        "-D",
        required=True,
        help="""Name of the detector to build the template for""",
    )
    parser_mt.add_argument(
        "--output",
        "-o",
        default=None,
        help="""Name of the template store to write to. By default, the
                detector's template_file in the configured template_dir""",
    )
    parser_mt.add_argument(
        "--max-events",
        "-n",
        default=None,
        type=int,
        help="""Number of calibration events to read. By default read the whole
                file""",
    )
    parser_mt.add_argument(
        "--overwrite",
        "-w",
        action="store_true",
        help="""Replace an existing template of the same name""",
    )

    parser_mt.set_defaults(func=make_template_cli)


def make_template_cli(args):
    """Passes command line arguments to :func:`.template.make_template.make_template`."""

    outfile = args.output
    if outfile is None:
        conf = load_analysis_config(args.config)
        _, det = conf.find_detector(args.detector)
        if not det.template_file:
            raise ConfigurationError(
                "no --output given and no template_file configured", detector=det.name
            )
        outfile = conf.template_dir / det.template_file

    make_template(
        args.raw_file,
        outfile,
        args.detector,
        args.config,
        args.template_config,
        n_max=args.max_events,
        overwrite=args.overwrite,
    )


def add_analyze_parser(subparsers):
    """Configure :func:`.pulses.build_pulses.analyze_pulses` command line interface"""

    parser_an = subparsers.add_parser(
        "analyze",
        description="""Fit the configured detector channels of every event of a
                       raw file and write the pulse summaries""",
    )
    parser_an.add_argument(
        "raw_file",
        help="""Input raw HDF5 file""",
    )
    parser_an.add_argument(
        "--config",
        "-c",
        required=True,
        help="""JSON/YAML file holding the pulse analysis configuration""",
    )
    parser_an.add_argument(
        "--output",
        "-o",
        default=None,
        help="""Name of output file. By default, output to
                <input-filename>_pulses.h5""",
    )
    parser_an.add_argument(
        "--max-events",
        "-n",
        default=None,
        type=int,
        help="""Number of events to process. By default do the whole file""",
    )
    parser_an.add_argument(
        "--plot-dir",
        "-p",
        default=None,
        help="""Directory in which the fits of detectors with the draw flag are
                saved""",
    )
    parser_an.add_argument(
        "--chunk",
        "-k",
        default=1024,
        type=int,
        help="""Number of events to read from disk at a time. Default is
                1024""",
    )

    parser_an.set_defaults(func=analyze_cli)


def analyze_cli(args):
    """Passes command line arguments to :func:`.pulses.build_pulses.analyze_pulses`."""

    analyze_pulses(
        args.raw_file,
        args.config,
        outfile=args.output,
        n_max=args.max_events,
        plot_dir=args.plot_dir,
        buffer_len=args.chunk,
    )
