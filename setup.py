#!/usr/bin/env python3
import os

from setuptools import find_packages, setup


def get_version():
    here = os.path.dirname(os.path.realpath(__file__))
    scope = {}
    with open(os.path.join(here, "src", "probinv", "_version.py")) as f:
        exec(f.read(), scope)
    return scope["version"]


setup(
    name="probinv",
    version=get_version(),
    author="probinv developers",
    description="Inverse CDFs of arbitrary continuous distributions from their density",
    long_description="",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "numba",
        "numpy",
        "scipy",
        "colorlog",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    zip_safe=False,
)
