"""Local storage models."""
from .local_value import LocalValue

__all__ = ["LocalValue"]
