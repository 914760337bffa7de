[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bikepath"
version = "0.1.0"
description = "Bezier path following, residual costs and run metrics for a bicycle-riding control task"
requires-python = ">=3.10"
dependencies = []
keywords = ["bezier", "path-following", "control", "residual", "metrics", "bicycle"]
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
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bikepath"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
