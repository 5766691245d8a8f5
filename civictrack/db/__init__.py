"""
Database package for CivicTrack.

Provides ORM models, session management, and repository pattern
for data persistence.
"""

from .models import Base, BillModel, CongressModel, SyncRunModel, NotificationJobModel
from .session import Database, db

__all__ = [
    "Base",
    "BillModel",
    "CongressModel",
    "SyncRunModel",
    "NotificationJobModel",
    "Database",
    "db",
]
