"""Estudimen authentication core.

Session tokens and encrypted third-party API keys for the study planner.
"""

__version__ = "0.1.0"
