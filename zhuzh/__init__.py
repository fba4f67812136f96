"""Zhuzh - conversational resource planning assistant."""

__version__ = "0.3.0"
