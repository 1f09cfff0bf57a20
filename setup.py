"""
Minimal setup.py for installing the tinyadmm Python package.

The package lives under python/ and installs as a pure-Python
distribution:

    pip install -e .

Problem tables for a specific vehicle are generated offline with
tinyadmm.tables.generate_tables and loaded at startup.
"""

from setuptools import find_packages, setup

setup(
    name="tinyadmm",
    version="0.1.0",
    description="ADMM solver for linear MPC with box constraints and a cached Riccati recursion",
    package_dir={"": "python"},
    packages=find_packages(where="python"),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.7",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "hypothesis>=6.0",
            "black>=23.0",
            "ruff>=0.1.0",
            "mypy>=1.0",
        ],
    },
)
