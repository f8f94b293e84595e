from datetime import datetime, timedelta, timezone

import pytest

from bulk_records.config import Settings
from bulk_records.schema import SCHEMAS
from bulk_records.service import BulkRecordService
from bulk_records.store import InMemoryRecordStore


class FixedClock:
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def stores(clock):
    return {kind: InMemoryRecordStore(clock) for kind in SCHEMAS}


@pytest.fixture
def service(stores, settings, clock):
    return BulkRecordService(stores, settings=settings, clock=clock)
