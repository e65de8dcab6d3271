"""Database adapters."""

from . import skype

__all__ = ["skype"]
