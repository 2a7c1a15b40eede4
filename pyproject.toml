[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "brkheap"
version = "0.1.0"
description = "A simulated sbrk-backed heap allocator with fences, checksummed chunk headers and pointer classification"
requires-python = ">=3.10"
dependencies = []
keywords = ["heap", "allocator", "malloc", "sbrk", "memory", "simulation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
brkheap-demo = "brkheap.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["brkheap"]

[tool.pytest.ini_options]
addopts = "-ra"
