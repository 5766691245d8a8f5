"""
Feed adapters for upstream legislative data.
"""

from .base_adapter import BaseAdapter
from .propublica_bills import ProPublicaBillsAdapter

__all__ = ["BaseAdapter", "ProPublicaBillsAdapter"]
