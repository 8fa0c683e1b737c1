"""
Certificate chain validation probe.
"""

__version__ = "0.1.0"
