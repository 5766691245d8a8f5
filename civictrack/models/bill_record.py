"""
Bill feed record.

Represents one bill as reported by the ProPublica Congress API, normalized
into the fields the sync engine consumes.

Responsibility: Typed snapshot of a single upstream bill payload
"""

from datetime import date
from typing import Optional, List, Tuple
from pydantic import BaseModel, Field, field_validator


class BillRecord(BaseModel):
    """
    Normalized upstream bill.

    Natural key: (congress, number)
    Example: (118, "H.R.1234")
    """

    # MARK: - Identity
    congress: int = Field(ge=1, description="Congress number (e.g., 118)")
    number: str = Field(description="Bill number as published, may contain periods (e.g., 'H.R.1234')")
    bill_type: Optional[str] = Field(
        default=None,
        description="Lowercase bill type (e.g., 'hr', 's', 'hjres')"
    )

    # MARK: - Descriptive
    title: Optional[str] = Field(default=None)
    summary: Optional[str] = Field(default=None)
    full_text_url: Optional[str] = Field(default=None)

    # MARK: - Timeline
    introduced_on: Optional[date] = Field(default=None)
    house_voted_on: Optional[date] = Field(default=None)
    senate_voted_on: Optional[date] = Field(default=None)
    enacted_on: Optional[date] = Field(default=None)
    vetoed_on: Optional[date] = Field(default=None)

    # MARK: - Chamber results
    house_result: Optional[str] = Field(default=None)
    senate_result: Optional[str] = Field(default=None)

    # MARK: - Enrichment references
    committee_bioguide_ids: List[str] = Field(default_factory=list)
    tag_names: List[str] = Field(default_factory=list)
    sponsor_bioguide_id: Optional[str] = Field(default=None)
    cosponsor_bioguide_ids: List[str] = Field(default_factory=list)

    # Bill types the feed client considers worth syncing
    tracked_bill_types: Tuple[str, ...] = Field(
        default=("hr", "s", "hjres", "sjres"),
        exclude=True
    )

    @field_validator("introduced_on", "house_voted_on", "senate_voted_on", "enacted_on", "vetoed_on", mode="before")
    @classmethod
    def blank_dates_to_none(cls, v):
        """ProPublica reports missing dates as empty strings"""
        if v == "":
            return None
        return v

    @property
    def relevant(self) -> bool:
        """Whether this record should be synced"""
        if not self.title or not self.title.strip():
            return False
        return (self.bill_type or "").lower() in self.tracked_bill_types

    @property
    def slug(self) -> str:
        """Lowercase alphanumeric identifier used by single-bill endpoints (e.g., 'hr1234')"""
        return "".join(ch for ch in self.number if ch.isalnum()).lower()

    def natural_key(self) -> tuple:
        """Return (congress, number-without-periods)"""
        return (self.congress, self.number.replace(".", ""))
