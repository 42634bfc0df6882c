import pytest

from limitless_sync.api import ApiClient, RateLimiter
from tests.fakes import FakeClock, FakeSession


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(session: FakeSession, clock: FakeClock) -> ApiClient:
    limiter = RateLimiter(0, clock=clock, sleep=clock.sleep)
    return ApiClient("test-key", limiter=limiter, session=session)
