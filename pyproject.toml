[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kikidev"
version = "0.1.0"
description = "An in-memory simulation of the unreliable kiki buffer device and a retrying client API for it"
requires-python = ">=3.10"
dependencies = []
keywords = ["device", "simulation", "ioctl", "buffers", "operating-systems", "exercise"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kikidev"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
