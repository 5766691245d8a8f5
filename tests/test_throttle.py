import pytest

from civictrack.adapters.propublica_bills import ProPublicaBillsAdapter
from civictrack.config import FeedConfig
from civictrack.utils.throttle import RequestThrottle


class FrozenClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_rate_must_be_positive():
    with pytest.raises(ValueError):
        RequestThrottle(0)


@pytest.mark.asyncio
async def test_back_to_back_requests_take_successive_slots():
    throttle = RequestThrottle(1000, clock=FrozenClock())

    delays = [await throttle.wait() for _ in range(3)]

    assert delays[0] == 0
    assert delays[1] == pytest.approx(0.001)
    assert delays[2] == pytest.approx(0.002)


@pytest.mark.asyncio
async def test_idle_time_frees_the_next_slot():
    clock = FrozenClock()
    throttle = RequestThrottle(2, clock=clock)

    await throttle.wait()
    clock.now += 5

    assert await throttle.wait() == 0


def test_adapter_spacing_follows_feed_config():
    adapter = ProPublicaBillsAdapter(config=FeedConfig(api_key="k", rate_limit_per_second=4.0))

    assert adapter.throttle.interval == pytest.approx(0.25)
