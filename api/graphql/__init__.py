"""
GraphQL API Package
===================
Strawberry GraphQL implementation for querying bills.
"""

from .schema import schema

__all__ = ["schema"]
