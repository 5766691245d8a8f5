"""Shared utilities."""

from .throttle import RequestThrottle

__all__ = ["RequestThrottle"]
