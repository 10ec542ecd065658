"""Setup script for pychainage."""

from setuptools import setup, find_packages
import os

# Read version from _version.py
version = {}
with open(os.path.join("pychainage", "_version.py")) as f:
    exec(f.read(), version)

# Read README
with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="pychainage",
    version=version["__version__"],
    description="Average speed profiles along a rail corridor from raw train GPS telemetry",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "docs", "examples"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Scientific/Engineering :: GIS",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=[
        "pandas>=1.3.0",
        "numpy>=1.20.0",
        "scipy>=1.7.0",
        "matplotlib>=3.5.0",
        "polars>=0.15.0",
        "pyarrow>=8.0.0",
        "pydantic>=2.0",
        "tqdm>=4.60.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    keywords="rail telemetry gps chainage kilometreage speed-profile geospatial",
    include_package_data=True,
    zip_safe=False,
)
