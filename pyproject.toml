[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zresampler"
version = "1.8.0"
description = "Band-limited audio sample rate conversion with fixed, variable and cubic resamplers, dithering, and command-line tools"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "audio",
    "resampling",
    "sample-rate",
    "interpolation",
    "dither",
    "dsp",
    "wav",
    "aiff",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Conversion",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
zresample = "zresampler.zresample:main"
zretune = "zresampler.zretune:main"

[tool.hatch.build.targets.wheel]
packages = ["zresampler"]

[tool.hatch.build.targets.sdist]
include = [
    "zresampler",
    "tests",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
