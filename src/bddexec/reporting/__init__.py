"""Reporting exports."""
from .terminal import TerminalReporter

__all__ = [
    "TerminalReporter",
]
