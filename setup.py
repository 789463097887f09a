#!/usr/bin/env python3
import os

from setuptools import find_packages, setup


def read_version():
    version = {}
    here = os.path.dirname(os.path.realpath(__file__))
    with open(os.path.join(here, "src", "pulsefit", "_version.py")) as f:
        exec(f.read(), version)
    return version["version"]


setup(
    name="pulsefit",
    version=read_version(),
    author="pulsefit developers",
    description="Sub-sample pulse templates and template fits of digitized detector traces",
    long_description="",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "colorlog",
        "h5py",
        "hist",
        "iminuit",
        "matplotlib",
        "numba",
        "numpy",
        "pyyaml",
        "scipy",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pulsefit=pulsefit.cli:pulsefit_cli",
        ],
    },
    zip_safe=False,
)
