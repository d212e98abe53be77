[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kcollector"
version = "1.0.0"
description = "Metric processing pipeline for Kubernetes clusters: aggregation, enrichment, rate calculation, discovery filtering and sinks."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kubernetes",
    "metrics",
    "monitoring",
    "collector",
    "wavefront",
    "aggregation",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kcollector"]

[tool.hatch.build.targets.sdist]
include = ["kcollector", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"
