[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fusioneval"
version = "0.1.0"
description = "State-vector layout tools and trajectory evaluation for multi-sensor pose estimators"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["ekf", "sensor fusion", "trajectory", "evaluation", "ground truth", "pose"]
classifiers = [
    "Development Status :: 4 - Beta",
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

[project.scripts]
fusioneval = "fusioneval.evaluation:main"

[tool.hatch.build.targets.wheel]
packages = ["fusioneval"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
