"""Slowdown: live speaking-rate monitor."""

__version__ = "0.3.0"
