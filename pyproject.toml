[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fluvio_future"
version = "0.1.0"
description = "Async building blocks: retries and backoff, timers, tasks, bounded and memory-mapped files, zero-copy transfer, TCP and TLS connectors."
requires-python = ">=3.10"
keywords = ["asyncio", "retry", "backoff", "timer", "tls", "tcp", "mmap", "sendfile"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Typing :: Typed",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "cryptography",
]

[tool.hatch.build.targets.wheel]
packages = ["fluvio_future"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
