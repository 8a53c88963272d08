[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tikvlite"
version = "0.1.0"
description = "Raw key-value client core for a region-partitioned distributed store: request plans, sharding, retries and metrics"
requires-python = ">=3.10"
dependencies = []
keywords = ["key-value", "database", "client", "raw", "region", "asyncio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["tikvlite"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
