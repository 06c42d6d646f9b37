[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "unlog"
version = "0.1.0"
description = "Enrich log entries with chains, correlations and fields, then compact them into a token-budgeted incident summary"
requires-python = ">=3.10"
dependencies = []
keywords = ["logs", "log-analysis", "incident", "summary", "enrichment"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
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

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["unlog"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
