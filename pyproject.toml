[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pgtempdb"
version = "0.1.0"
description = "Create and drop temporary PostgreSQL databases on a running instance"
requires-python = ">=3.10"
dependencies = []
keywords = ["postgres", "postgresql", "temporary database", "testing", "schema"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pgtempdb"]

[tool.pytest.ini_options]
addopts = "-ra"
