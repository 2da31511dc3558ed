"""
Phase gate engine - edit-triggered status validation for a shared project tracker.
"""

from .core.config import VERSION

__version__ = VERSION
