"""Packaging for flatkv (src layout, console script ``flatkv``)."""

from setuptools import find_packages, setup

setup(
    name="flatkv",
    version="0.1.0",
    description="Flat-file key-value store with escaped values and atomic saves",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "click>=8.1",
        "numpy>=1.26",
    ],
    extras_require={
        "test": ["pytest>=8"],
    },
    entry_points={
        "console_scripts": [
            "flatkv=flatkv.cli:main",
        ],
    },
)
