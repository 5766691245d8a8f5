"""
Bill status engine.

Derives the per-stage legislative status of a bill from its persisted
fields. All functions are pure: they read the bill and never query.

Responsibility: Stage statuses and percentage formatting
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from ..models.enums import StageStatus

STAGES = ("Intro", "House", "Senate", "President")


def intro_status(bill) -> str:
    """A persisted bill has always been introduced"""
    return StageStatus.PASSED.value


def house_status(bill) -> Optional[str]:
    if bill.enacted_on is not None:
        return StageStatus.PASSED.value
    return bill.house_result


def senate_status(bill) -> Optional[str]:
    if bill.enacted_on is not None:
        return StageStatus.PASSED.value
    return bill.senate_result


def president_status(bill) -> Optional[str]:
    """
    Presidential stage.

    Returns:
        "passed" when enacted and not vetoed, "failed" when vetoed and not
        enacted, "unresolved" when the feed reports both, None when neither
    """
    enacted = bill.enacted_on is not None
    vetoed = bill.vetoed_on is not None

    if enacted and vetoed:
        return StageStatus.UNRESOLVED.value
    if enacted:
        return StageStatus.PASSED.value
    if vetoed:
        return StageStatus.FAILED.value
    return None


def bill_status(bill) -> Dict[str, Optional[str]]:
    """Stage statuses keyed Intro, House, Senate, President, in that order"""
    return {
        "Intro": intro_status(bill),
        "House": house_status(bill),
        "Senate": senate_status(bill),
        "President": president_status(bill),
    }


def format_percentage(count: int, total: int) -> Optional[str]:
    """
    Render count/total as a whole percentage with a trailing "%".

    Half rounds up (1/8 -> "13%"). Returns None when total is zero.
    """
    if total <= 0:
        return None
    percent = (Decimal(count) * 100 / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return f"{percent}%"
