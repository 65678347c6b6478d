"""Package metadata, read by setup.py."""

__version__ = "0.1.0"

AUTHOR = "AnxMeta developers"
COPYRIGHT = "Copyright 2024--now, AnxMeta developers"
LICENSE = "MIT"
STATUS = "Prototype"
PACKAGENAME = "anxmeta"
DESCRIPTION = "AnxMeta: meta-analysis of home-based anxiety interventions"

REQUIRES = [
    "numpy>=1.8.0",
    "scipy",
    "pandas",
    "wrapt",
]

TESTS_REQUIRES = [
    "coverage",
    "flake8",
    "pytest",
    "pytest-cov",
]

EXTRA_REQUIRES = {
    "tests": TESTS_REQUIRES,
}

# Enable a handle to install all extra dependencies at once
EXTRA_REQUIRES["all"] = list(set([v for deps in EXTRA_REQUIRES.values() for v in deps]))

# Package classifiers
CLASSIFIERS = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "License :: OSI Approved :: MIT License",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Topic :: Scientific/Engineering",
]
