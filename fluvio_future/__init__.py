"""Async building blocks: retries, timers, tasks, files, networking and TLS."""

__version__ = "0.1.0"