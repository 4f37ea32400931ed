[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "numaflow-sdk"
version = "0.8.1"
description = "Building blocks for user-defined map, map-stream and batch-map functions in Numaflow pipelines"
requires-python = ">=3.10"
dependencies = []
keywords = ["numaflow", "stream-processing", "map", "udf", "pipeline"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["numaflow_sdk"]

[tool.hatch.build.targets.sdist]
include = ["numaflow_sdk", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
