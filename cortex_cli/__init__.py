"""
Cortex CLI - command-line client for the Cortex platform.
"""

__version__ = "6.3.0"
