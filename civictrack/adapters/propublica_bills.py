"""
ProPublica Congress API adapter for fetching bills.

Pulls recently updated bills and single-bill detail from
api.propublica.org/congress/v1 and normalizes them into BillRecord.

Responsibility: Fetch and normalize bills from the ProPublica JSON API
"""

from datetime import datetime, UTC
from typing import Optional, Dict, Any, List
import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .base_adapter import BaseAdapter
from ..config import FeedConfig, settings
from ..exceptions import FeedUnavailableError
from ..models.bill_record import BillRecord
from ..models.adapter_models import AdapterResponse, AdapterError


class ProPublicaBillsAdapter(BaseAdapter[BillRecord]):
    """
    Adapter for the ProPublica bills endpoints.

    Key features:
    - Recent bills: /{congress}/{chamber}/bills/{kind}.json
    - Single bill: /{congress}/bills/{slug}.json
    - Cosponsor ids: /{congress}/bills/{slug}/cosponsors.json
    - Retries transport errors with exponential backoff

    Example:
        adapter = ProPublicaBillsAdapter()
        response = await adapter.fetch_recent()
        relevant = [record for record in response.data if record.relevant]
    """

    def __init__(
        self,
        config: Optional[FeedConfig] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize ProPublica bills adapter.

        Args:
            config: Feed settings (defaults to global settings.feed)
            client: Pre-built HTTP client (tests inject a MockTransport client)
        """
        self.config = config or settings.feed

        super().__init__(
            source_name="propublica_bills",
            rate_limit_per_second=self.config.rate_limit_per_second,
            max_retries=self.config.max_retries,
            timeout_seconds=self.config.timeout_seconds
        )

        headers = {
            "User-Agent": "CivicTrack/1.0",
            "Accept": "application/json",
        }
        if self.config.api_key:
            headers["X-API-Key"] = self.config.api_key

        self.client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.timeout_seconds,
            headers=headers,
            follow_redirects=True
        )

    async def fetch(self, **kwargs: Any) -> AdapterResponse[BillRecord]:
        """Alias for fetch_recent()"""
        return await self.fetch_recent(**kwargs)

    async def fetch_recent(
        self,
        congress: Optional[int] = None,
        chamber: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> AdapterResponse[BillRecord]:
        """
        Fetch recent bills.

        Never raises: transport and payload failures come back as a
        FAILURE/SOURCE_UNAVAILABLE response, per-bill normalization
        failures as PARTIAL_SUCCESS.

        Args:
            congress: Congress number (defaults to config)
            chamber: "house", "senate" or "both"
            kind: "introduced", "updated", "active", "passed", "enacted" or "vetoed"
        """
        start_time = datetime.now(UTC)
        congress = congress or self.config.congress
        chamber = chamber or self.config.chamber
        kind = kind or self.config.kind

        records: List[BillRecord] = []
        errors: List[AdapterError] = []

        self.logger.info(f"Fetching recent bills: congress={congress}, chamber={chamber}, kind={kind}")

        try:
            payload = await self._get_json(f"/{congress}/{chamber}/bills/{kind}.json")
            raw_bills = self._first_result(payload).get("bills", [])
        except httpx.HTTPStatusError as e:
            self.logger.error(f"Recent bills request failed: {e}")
            return self._build_failure_response(e, start_time, retryable=e.response.status_code >= 500)
        except httpx.TransportError as e:
            self.logger.error(f"Recent bills request failed: {e}")
            return self._build_failure_response(e, start_time, retryable=True)
        except ValueError as e:
            self.logger.error(f"Malformed recent bills payload: {e}")
            return self._build_failure_response(e, start_time)

        for raw_bill in raw_bills:
            try:
                record = self.normalize(raw_bill, congress=congress)
                if self.config.include_cosponsors and raw_bill.get("cosponsors"):
                    record.cosponsor_bioguide_ids = await self.fetch_cosponsor_ids(record.slug, record.congress)
                records.append(record)
            except (ValueError, KeyError, httpx.HTTPError) as e:
                self.logger.warning(f"Failed to normalize bill: {e}", exc_info=True)
                errors.append(AdapterError(
                    timestamp=datetime.now(UTC),
                    error_type=type(e).__name__,
                    message=str(e),
                    context={"bill_id": raw_bill.get("bill_id", "unknown")},
                    retryable=isinstance(e, httpx.TransportError)
                ))

        self.logger.info(f"Successfully fetched {len(records)} bills, {len(errors)} errors")

        return self._build_success_response(data=records, errors=errors, start_time=start_time)

    async def fetch_one(self, slug: str, congress: Optional[int] = None) -> BillRecord:
        """
        Fetch a single bill by slug (e.g., "hr1234").

        Raises:
            FeedUnavailableError: If the request fails or the payload is unusable
        """
        congress = congress or self.config.congress
        slug = slug.lower()

        self.logger.info(f"Fetching bill {slug} (congress {congress})")

        try:
            payload = await self._get_json(f"/{congress}/bills/{slug}.json")
            raw_bill = self._first_result(payload)
            record = self.normalize(raw_bill, congress=congress)
            if self.config.include_cosponsors and raw_bill.get("cosponsors"):
                record.cosponsor_bioguide_ids = await self.fetch_cosponsor_ids(slug, congress)
            return record
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise FeedUnavailableError(f"Could not fetch bill {slug} for congress {congress}: {e}") from e

    async def fetch_cosponsor_ids(self, slug: str, congress: int) -> List[str]:
        """Fetch bioguide ids of a bill's cosponsors."""
        payload = await self._get_json(f"/{congress}/bills/{slug}/cosponsors.json")
        cosponsors = self._first_result(payload).get("cosponsors") or []
        return [c["cosponsor_id"] for c in cosponsors if c.get("cosponsor_id")]

    def normalize(self, raw_data: Dict[str, Any], congress: Optional[int] = None, **kwargs: Any) -> BillRecord:
        """
        Normalize a ProPublica bill object into a BillRecord.

        Args:
            raw_data: Bill object from the "bills" or "results" array
            congress: Congress number from the request, used when the object lacks one

        Raises:
            ValueError: If required fields are missing
        """
        number = raw_data.get("number")
        if not number:
            raise ValueError(f"Bill has no number: {raw_data.get('bill_id', 'unknown')}")

        bill_congress = raw_data.get("congress") or congress
        if not bill_congress and raw_data.get("bill_id", "").count("-") == 1:
            bill_congress = raw_data["bill_id"].split("-")[1]
        if not bill_congress:
            raise ValueError(f"Bill {number} has no congress")

        house_passage = raw_data.get("house_passage") or raw_data.get("house_passage_vote") or None
        senate_passage = raw_data.get("senate_passage") or raw_data.get("senate_passage_vote") or None
        primary_subject = raw_data.get("primary_subject")

        return BillRecord(
            congress=int(bill_congress),
            number=number,
            bill_type=(raw_data.get("bill_type") or "").lower() or None,
            title=raw_data.get("title"),
            summary=raw_data.get("summary") or raw_data.get("summary_short") or None,
            full_text_url=raw_data.get("gpo_pdf_uri") or raw_data.get("congressdotgov_url"),
            introduced_on=raw_data.get("introduced_date"),
            house_voted_on=house_passage,
            senate_voted_on=senate_passage,
            enacted_on=raw_data.get("enacted"),
            vetoed_on=raw_data.get("vetoed"),
            house_result="passed" if house_passage else None,
            senate_result="passed" if senate_passage else None,
            committee_bioguide_ids=list(raw_data.get("committee_codes") or []),
            tag_names=[primary_subject] if primary_subject else [],
            sponsor_bioguide_id=raw_data.get("sponsor_id"),
            tracked_bill_types=tuple(self.config.tracked_bill_types),
        )

    async def _get_json(self, path: str) -> Dict[str, Any]:
        """GET a path relative to the API base URL, retrying transport errors."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                await self.throttle.wait()
                self.logger.debug(f"GET {path}")
                response = await self.client.get(path)
                response.raise_for_status()
                payload = response.json()

        if payload.get("status") not in (None, "OK"):
            raise ValueError(f"ProPublica error for {path}: {payload.get('errors') or payload.get('status')}")
        return payload

    @staticmethod
    def _first_result(payload: Dict[str, Any]) -> Dict[str, Any]:
        results = payload.get("results") or []
        if not results:
            raise ValueError("ProPublica payload has no results")
        return results[0]

    async def close(self) -> None:
        """Close HTTP client"""
        await self.client.aclose()
