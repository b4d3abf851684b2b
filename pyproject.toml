[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "quadflight"
version = "0.1.0"
description = "Quadcopter simulation components: motors, UWB ranging, state estimators, safety checks and minimum-jerk trajectory generation"
requires-python = ">=3.10"
keywords = [
    "quadcopter",
    "drone",
    "simulation",
    "kalman-filter",
    "state-estimation",
    "trajectory-generation",
    "motion-primitives",
]
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
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["quadflight"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
