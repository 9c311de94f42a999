[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "techlogpump"
version = "0.1.0"
description = "Tail 1C:Enterprise technological logs and ship parsed events to ClickHouse in batches"
requires-python = ">=3.10"
keywords = ["1C", "techlog", "clickhouse", "log shipping", "tail"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Log Analysis",
    "Topic :: System :: Logging",
]
dependencies = [
    "pyyaml>=6.0",
    "httpx>=0.24",
    "watchdog>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "respx>=0.20",
]

[project.scripts]
techlogpump = "techlogpump.main:main"

[tool.hatch.build.targets.wheel]
packages = ["techlogpump"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
