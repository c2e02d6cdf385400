[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "moni"
version = "0.1.0"
description = "Matching statistics over run-length compressed BWT indexes, with read parsing, sequence indexing, mapping-quality and SAM helpers"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "bioinformatics",
    "matching statistics",
    "bwt",
    "r-index",
    "pangenome",
    "fastq",
    "sam",
    "mapq",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
moni-ms = "moni.matching_statistics:main"

[tool.hatch.build.targets.wheel]
packages = ["moni"]

[tool.hatch.build.targets.sdist]
include = ["moni", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
