#!/usr/bin/env python3
# =============================================================================
#  zerodiv-shims - setup.py
#
#  Static zero-divisor detection for Cppcheck dump files.
#
#  Typical use:
#      pip install -e ".[dev]"
#      python -m pytest
#      cppcheck --dump main.c && zerodiv main.c.dump
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

# ---------------------------------------------------------------------------
#  Read version from the package so we have a single source of truth.
# ---------------------------------------------------------------------------
_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from zerodiv_shims/__init__.py."""
    init = _HERE / "zerodiv_shims" / "__init__.py"
    text = init.read_text(encoding="utf-8")
    match = re.search(r'^__version__\s*=\s*"([^"]+)"', text, re.MULTILINE)
    if match:
        return match.group(1)
    return "0.0.0"


def _read_long_description() -> str:
    """Read README.md for the long description."""
    readme = _HERE / "README.md"
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


def _read_requirements() -> list[str]:
    """Read requirements.txt if it exists."""
    req_file = _HERE / "requirements.txt"
    if req_file.exists():
        lines = req_file.read_text(encoding="utf-8").splitlines()
        return [
            ln.strip()
            for ln in lines
            if ln.strip() and not ln.strip().startswith("#")
        ]
    return []


# ---------------------------------------------------------------------------
#  ``cppcheckdata`` is not listed: it ships with Cppcheck itself and is put
#  on the path by ``cppcheck --addon``. Only ``run_addon`` imports it.
# ---------------------------------------------------------------------------
setup(
    name="zerodiv-shims",
    version=_read_version(),
    description=(
        "Static zero-divisor detection (CWE-369) as a Cppcheck addon."
    ),
    long_description=_read_long_description(),
    long_description_content_type="text/markdown",
    license="MIT",
    author="zerodiv-shims contributors",
    python_requires=">=3.10",
    packages=find_packages(
        include=[
            "zerodiv_shims",
            "zerodiv_shims.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    package_data={
        "zerodiv_shims": ["py.typed"],
    },
    install_requires=_read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "ruff>=0.4",
            "mypy>=1.10",
            "black>=24.0",
            "isort>=5.13",
        ],
    },
    entry_points={
        "console_scripts": [
            "zerodiv=zerodiv_shims.checkers:_main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Quality Assurance",
        "Typing :: Typed",
    ],
    keywords=[
        "cppcheck",
        "static-analysis",
        "division-by-zero",
        "CWE-369",
        "program-analysis",
    ],
    zip_safe=False,
)
