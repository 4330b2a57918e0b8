#!/usr/bin/env python3
"""
Setup script for Trainingsplan
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="trainingsplan",
    version="1.0.0",
    author="Trainingsplan",
    description="Browse, filter and map recurring training sessions",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["trainingsplan", "trainingsplan.*"]),
    package_data={"trainingsplan": ["templates/*.html"]},
    include_package_data=True,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Framework :: Flask",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "trainingsplan=trainingsplan.cli:main",
        ],
    },
)
