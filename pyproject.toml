[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "adbwire"
version = "0.1.0"
description = "Client for the Android Debug Bridge server protocol: device commands, file transfer and reply parsing"
requires-python = ">=3.10"
dependencies = []
keywords = ["adb", "android", "debug-bridge", "client", "protocol", "sync"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["adbwire"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
