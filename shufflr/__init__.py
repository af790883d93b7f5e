"""
Shufflr: self-hosted random image service
"""
from .config import APP_VERSION

__version__ = APP_VERSION
