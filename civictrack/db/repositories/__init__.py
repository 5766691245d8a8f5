"""
Repository package for data access operations.

Implements repository pattern for abstracting database operations.
"""

from .bill_repository import BillRepository
from .reference_repository import CongressRepository, CommitteeRepository, MemberRepository, TagRepository
from .sync_run_repository import SyncRunRepository
from .bill_stats_repository import BillStatsRepository, PositionSummary

__all__ = [
    "BillRepository",
    "CongressRepository",
    "CommitteeRepository",
    "MemberRepository",
    "TagRepository",
    "SyncRunRepository",
    "BillStatsRepository",
    "PositionSummary",
]
