"""
Enumerations shared by the ORM, sync engine and GraphQL layer.

Responsibility: Named constants for chambers, sponsorships, statuses and notifications
"""

from enum import Enum, IntEnum


class Chamber(IntEnum):
    """Chamber identifiers as stored on votes and members"""
    HOUSE = 1
    SENATE = 2


class SponsorshipType(str, Enum):
    """The type of sponsorship"""
    PRIMARY = "primary"
    COSPONSOR = "cosponsor"


class FeatureState(str, Enum):
    """Editorial placement of a bill"""
    UNFEATURED = "unfeatured"
    FEATURED = "featured"
    HIGHLIGHTED = "highlighted"


class StageStatus(str, Enum):
    """Derived status of a legislative stage"""
    PASSED = "passed"
    FAILED = "failed"
    # Enacted and vetoed at the same time
    UNRESOLVED = "unresolved"


class NotificationKind(str, Enum):
    """Notification events emitted when a watched bill column changes"""
    BILL_HOUSE_CHANGE = "bill_house_change"
    BILL_SENATE_CHANGE = "bill_senate_change"
    BILL_ENACTED = "bill_enacted"
    BILL_VETOED = "bill_vetoed"


class SyncRunStatus(str, Enum):
    """Lifecycle of a sync run record"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationJobStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
