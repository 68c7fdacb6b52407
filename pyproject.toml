[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "whalecopy"
version = "0.1.0"
description = "Whale trade detection, wallet scoring and copy-signal gating for prediction markets"
requires-python = ">=3.10"
keywords = ["prediction-markets", "copy-trading", "whales", "kelly", "consensus", "websocket"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Office/Business :: Financial :: Investment",
]
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["whalecopy"]

[tool.pytest.ini_options]
addopts = "-ra"
