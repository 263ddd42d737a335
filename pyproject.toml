[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sperr"
version = "0.1.0"
description = "Building blocks of a wavelet-based lossy compressor for scientific floating-point volumes: chunking, container headers, bit packing and error statistics."
requires-python = ">=3.10"
dependencies = []
keywords = ["compression", "lossy", "wavelet", "scientific-data", "volume", "bitstream"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Compression",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["sperr"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
