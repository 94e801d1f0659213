"""Swizz: delegated phone calls with live-human detection."""

__version__ = "0.1.0"
