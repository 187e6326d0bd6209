[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "planckblog"
version = "0.1.0"
description = "Core of a small, simple blog server: post storage, rendering, themes, URLs and HTTP helpers."
requires-python = ">=3.10"
keywords = ["blog", "sqlite", "markdown", "asciidoc", "themes"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content :: News/Diary",
]
dependencies = [
    "markdown-it-py",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["planckblog"]

[tool.pytest.ini_options]
addopts = "-ra"
