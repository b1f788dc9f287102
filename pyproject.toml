[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "quantdesk"
version = "0.1.0"
description = "Spot-trading strategy backend pieces: hourly candle storage and sync, CSV import, lot ledger, balance reconciliation, instance rules and trade commands."
requires-python = ">=3.10"
keywords = ["trading", "candles", "ohlcv", "portfolio", "ledger", "spot", "csv-import"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Typing :: Typed",
]
dependencies = [
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["quantdesk"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
