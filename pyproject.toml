[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cgn"
version = "0.1.0"
description = "Build-graph tooling: target labels, configurations, an mtime file database and ninja file generation"
requires-python = ">=3.10"
dependencies = []
keywords = ["build", "ninja", "build-graph", "configuration", "labels", "glob"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Environment :: Console",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cgn = "cgn.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["cgn"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
