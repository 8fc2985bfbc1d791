"""
Shared fixtures.

Stores run against MemorySlotStorage and a controllable clock, so ids,
timestamps and invoice years are predictable.
"""

from datetime import datetime, timedelta, timezone

import pytest

from billstore.config import get_settings
from billstore.services.storage import (
    BillStore,
    CustomerBillStore,
    MemorySlotStorage,
)


class FakeClock:
    """Returns a fixed moment, optionally advancing by `step` on every call."""

    def __init__(
        self,
        start: datetime = datetime(2024, 6, 15, 10, 30, tzinfo=timezone.utc),
        step: timedelta = timedelta(0),
    ):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Keep BILLSTORE_* from the developer's shell out of the tests."""
    for name in ("BILLSTORE_BACKEND", "BILLSTORE_DATA_DIR", "BILLSTORE_AUDIT_KEY"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def clock():
    return FakeClock(step=timedelta(seconds=1))


@pytest.fixture()
def make_clock():
    return FakeClock


@pytest.fixture()
def storage():
    return MemorySlotStorage()


@pytest.fixture()
def bill_store(storage, clock):
    return BillStore(storage, clock=clock)


@pytest.fixture()
def customer_store(storage, clock):
    return CustomerBillStore(storage, clock=clock)


@pytest.fixture()
def bill_form():
    """A bill as the billing form submits it."""
    return {
        "billtype": "Service",
        "customer": "Acme Corp",
        "address": "12 MG Road",
        "city": "Pune",
        "state": "Maharashtra",
        "gstno": "27AAPFU0939F1ZV",
        "invoice": "A-101",
        "date": "2024-06-10",
        "additionalItems": [
            {
                "sno": "1",
                "name": "AC servicing",
                "hsn": "998719",
                "units": "2",
                "price": "100.00",
                "gst": "18",
                "cgst": "18.00",
                "sgst": "18.00",
                "totalAmount": "236.00",
                "quantityType": "Nos",
            }
        ],
        "notes": "Quarterly maintenance",
        "subtotal": "200.00",
        "taxAmount": "36.00",
        "total": "236.00",
    }


@pytest.fixture()
def customer_form():
    return {
        "customer": "Acme Corp",
        "address": "12 MG Road",
        "city": "Pune",
        "state": "Maharashtra",
        "gstno": "27AAPFU0939F1ZV",
        "invoice": "A-101",
    }
