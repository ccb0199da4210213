#/usr/bin/env python

# Setup the jet observables analysis
# Derived from the setup.py in aliBuild and Overwatch
# and based on: https://python-packaging.readthedocs.io/en/latest/index.html

# Always prefer setuptools over distutils
from setuptools import setup, find_packages
# To use a consistent encoding
from codecs import open
import os
from typing import Any, cast, Dict

def get_version() -> str:
    version_module: Dict[str, Any] = {}
    with open(os.path.join("jet_observables", "version.py")) as f:
        exec(f.read(), version_module)
    return cast(str, version_module["__version__"])

# Get the long description from the README file
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name="jet_observables",
    version=get_version(),

    description="Jet and hadron observables for heavy-ion Monte-Carlo events",
    long_description=long_description,
    long_description_content_type="text/markdown",

    license="BSD 3-Clause",

    # See https://pypi.python.org/pypi?%3Aaction=list_classifiers
    classifiers=[
        # How mature is this project? Common values are
        #   3 - Alpha
        #   4 - Beta
        #   5 - Production/Stable
        'Development Status :: 4 - Beta',

        # Indicate who your project is intended for
        'Intended Audience :: Science/Research',

        # Specify the Python versions you support here.
        'Programming Language :: Python :: 3',
    ],

    # What does your project relate to?
    keywords='HEP heavy-ion jets',

    packages=find_packages(exclude=(".git", "tests", "tests.*")),

    # Rename scripts to the desired executable names
    # See: https://stackoverflow.com/a/8506532
    entry_points = {
        "console_scripts": [
            "jetObservables = jet_observables.analysis.run:run_from_terminal",
        ],
    },

    # This is usually the minimal set of the required packages.
    install_requires=[
        "ruamel.yaml",
        "numpy",
        "pachyderm",
        "hist",
        "coloredlogs",
        "enlighten",
    ],

    # Include additional files
    include_package_data=True,

    extras_require = {
        # Jet finding via FastJet
        "clustering": [
            "pyjet",
        ],
        "tests": [
            "pytest",
            "pytest-cov",
            "pytest-mock",
        ],
        "dev": [
            "pre-commit",
            "flake8",
            # Makes flake8 easier to parse
            "flake8-colors",
            "mypy",
            "yamllint",
        ]
    }
)
