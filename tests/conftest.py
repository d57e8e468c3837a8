import pytest

from tests.factories import LOCAL_TZ, FakeClock, FakeFetcher


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_coordinator(fake_fetcher, fake_clock):
    from salesdash.services.cache.coordinator import CacheCoordinator

    def _make(fetcher=fake_fetcher, **overrides):
        options = {
            "clock": fake_clock,
            "tz": LOCAL_TZ,
            "unfiltered_delay": 0.0,
        }
        options.update(overrides)
        return CacheCoordinator(fetcher, **options)

    return _make
