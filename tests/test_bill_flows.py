from civictrack.config import settings
from civictrack.prefect_flows.bill_flows import refresh_bill_task, sync_recent_bills_task


def test_tasks_share_retry_settings():
    for task in (sync_recent_bills_task, refresh_bill_task):
        assert task.retries == settings.sync.flow_retries
        assert task.retry_delay_seconds == settings.sync.flow_retry_delay_seconds
