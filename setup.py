"""setup.py: setuptools control."""

import codecs
import os.path
import sys
from typing import List

from setuptools import find_packages, setup


ROOT_DIR = os.path.abspath(os.path.dirname(__file__))


def read_file(rel_path: str) -> str:
    """Read a file and return the contents."""
    _path = os.path.join(ROOT_DIR, rel_path)
    if os.path.isfile(_path):
        with codecs.open(_path, "r") as fp:
            return fp.read()
    else:
        return ""


def get_project_name_and_version(rel_path: str) -> List[str]:
    """Get the project name and version from a file specified by __version__ = name@version."""
    for line in read_file(rel_path).splitlines():
        if line.startswith("__version__"):
            delim = '"' if '"' in line else "'"
            return line.split(delim)[1].split("@")
    else:
        raise RuntimeError("Unable to find version string.")


def get_requirements(filename: str = "requirements.txt") -> List[str]:
    """Get Python package dependencies from a requirements file."""

    def _read_requirements(filename: str) -> List[str]:
        requirements = read_file(filename).strip().split("\n")
        resolved_requirements = []
        for line in requirements:
            if line.startswith("-r "):
                resolved_requirements += _read_requirements(line.split()[1])
            elif line.strip():
                resolved_requirements.append(line)
        return resolved_requirements

    return _read_requirements(filename)


name, version = get_project_name_and_version("instaclustr_exporter/__about__.py")
version_range_max = max(sys.version_info[1], 12) + 1

setup(
    name=name,
    version=version,
    description=(
        "Prometheus exporter for Instaclustr managed Cassandra clusters. Queries the Instaclustr provisioning "
        "and monitoring APIs on every scrape and exposes cluster and node metrics in the Prometheus text format."
    ),
    long_description=read_file("README.md"),
    long_description_content_type="text/markdown",
    keywords="prometheus exporter cassandra instaclustr monitoring metrics",
    license="Apache 2.0 License",
    author="Bud Ecosystem Inc.",
    packages=find_packages(include=("instaclustr_exporter", "instaclustr_exporter.*")),
    package_data={"instaclustr_exporter.mock": ["data/*.json", "data/*/*.json"]},
    include_package_data=True,
    python_requires=">=3.9.0",
    install_requires=get_requirements(),
    extras_require={"test": get_requirements("requirements-test.txt")},
    entry_points={
        "console_scripts": [
            "instaclustr-exporter=instaclustr_exporter.main:main",
            "instaclustr-mock=instaclustr_exporter.mock.server:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Monitoring",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Framework :: FastAPI",
        "Programming Language :: Python :: 3",
    ]
    + [f"Programming Language :: Python :: 3.{i}" for i in range(9, version_range_max)],
)
