"""Services package for the bill sync and status engines"""

from .bill_status import bill_status, format_percentage
from .notification_dispatcher import (
    NotificationDispatcher,
    DatabaseNotificationDispatcher,
    RedisNotificationDispatcher,
    build_dispatcher,
)
from .bill_sync_service import BillSyncService, UpsertOutcome, UpsertStatus

__all__ = [
    "bill_status",
    "format_percentage",
    "NotificationDispatcher",
    "DatabaseNotificationDispatcher",
    "RedisNotificationDispatcher",
    "build_dispatcher",
    "BillSyncService",
    "UpsertOutcome",
    "UpsertStatus",
]
