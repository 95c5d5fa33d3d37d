[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chatlogkit"
version = "0.1.0"
description = "Utilities for chat log tooling: flexible time parsing, string and file helpers, decompression, cached file copies and dat image decoding"
requires-python = ">=3.10"
keywords = ["chatlog", "time-parsing", "lz4", "zstd", "file-cache", "dat", "image-decoding"]
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
    "Topic :: Utilities",
]
dependencies = [
    "cryptography",
    "lz4",
    "zstandard",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["chatlogkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
