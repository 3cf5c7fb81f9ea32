"""
shorten_platform package initializer.
"""

from . import service
from . import storage
from . import web

__all__ = ["service", "storage", "web"]
