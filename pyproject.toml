[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "linkagg"
version = "0.1.0"
description = "Protocol building blocks for aggregating multiple network links into one connection"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["networking", "link aggregation", "multipath", "protocol", "framing", "asyncio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Framework :: AsyncIO",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["linkagg"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
