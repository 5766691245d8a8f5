"""
Prefect flows for the bill sync engine.

Defines flows for:
- Syncing recently updated bills from ProPublica
- Refreshing a single bill on demand

Retries live here, not in the engine: a failed pass is retried as a
whole after the configured delay.

Responsibility: Schedule and retry bill sync passes
"""

from typing import Any, Dict

from prefect import flow, task, get_run_logger

from ..config import settings
from ..db.session import Database
from ..services.bill_sync_service import run_bill_sync, run_bill_refresh


@task(
    name="sync_recent_bills",
    description="Fetch recently updated bills from ProPublica and upsert them",
    retries=settings.sync.flow_retries,
    retry_delay_seconds=settings.sync.flow_retry_delay_seconds,
)
async def sync_recent_bills_task() -> Dict[str, Any]:
    """
    Run one full bill sync pass.

    Returns:
        Sync run counters
    """
    logger = get_run_logger()
    logger.info(
        "Starting bill sync: congress=%s, chamber=%s, kind=%s",
        settings.feed.congress,
        settings.feed.chamber,
        settings.feed.kind,
    )

    db = Database()
    await db.initialize()

    try:
        result = await run_bill_sync(db)
        logger.info(
            f"Sync run {result['sync_run_id']} complete: "
            f"{result['bills_created']} created, {result['bills_updated']} updated, "
            f"{result['bills_unchanged']} unchanged, {result['records_failed']} failed"
        )
        return result
    finally:
        await db.close()


@task(
    name="refresh_bill",
    description="Re-fetch one bill and overwrite its fields",
    retries=settings.sync.flow_retries,
    retry_delay_seconds=settings.sync.flow_retry_delay_seconds,
)
async def refresh_bill_task(bill_id: int) -> Dict[str, Any]:
    logger = get_run_logger()
    logger.info(f"Refreshing bill {bill_id}")

    db = Database()
    await db.initialize()

    try:
        return await run_bill_refresh(db, bill_id)
    finally:
        await db.close()


@flow(
    name="sync-recent-bills",
    description="Sync recently updated bills from ProPublica",
    log_prints=True,
)
async def sync_recent_bills_flow() -> Dict[str, Any]:
    """
    Main flow for the periodic bill sync.

    This flow:
    1. Records a sync run (skipped if another pass is running)
    2. Fetches recently updated bills and keeps the relevant ones
    3. Upserts each bill and enriches new ones once
    4. Queues notifications for watched changes
    """
    logger = get_run_logger()
    logger.info("Starting bill sync flow")

    result = await sync_recent_bills_task()

    logger.info(f"Flow complete: {result['records_relevant']} relevant bills processed")
    return result


@flow(
    name="refresh-bill",
    description="Refresh a single bill from ProPublica",
    log_prints=True,
)
async def refresh_bill_flow(bill_id: int) -> Dict[str, Any]:
    logger = get_run_logger()

    result = await refresh_bill_task(bill_id)

    logger.info(f"Refreshed bill {result['number']}")
    return result


if __name__ == "__main__":
    import asyncio

    asyncio.run(sync_recent_bills_flow())
