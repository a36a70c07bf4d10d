"""
Utility functions for severity analysis scripts.
"""

from .logging import configure_logging

__all__ = ['configure_logging']
