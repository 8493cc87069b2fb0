"""
Pytest configuration and fixtures.

Environment variables are loaded here, before test collection, so ORDERS_*
settings from a local .env apply to every test.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from dotenv import load_dotenv

from lifecycle.engine import LifecycleEngine
from lifecycle.store import InMemoryOrderStore
from orders.models import Invoice, WorkOrder
from scheduler.reconcile import ReconciliationScheduler

load_dotenv()

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
NOW = T0 + timedelta(days=2)


def make_invoice(invoice_id: str, created_at: datetime = T0, **kwargs) -> Invoice:
    kwargs.setdefault("total", Decimal("45.500"))
    return Invoice(invoice_id=invoice_id, created_at=created_at, **kwargs)


def make_work_order(work_order_id: str, invoice_id=None, created_at: datetime = T0, **kwargs) -> WorkOrder:
    return WorkOrder(id=work_order_id, invoice_id=invoice_id, created_at=created_at, **kwargs)


@pytest.fixture
def store() -> InMemoryOrderStore:
    """Store holding one linked invoice/work order pair."""
    store = InMemoryOrderStore()
    store.add_invoice(make_invoice("INV-1", work_order_id="WO-1", patient_name="Sara"))
    store.add_work_order(make_work_order("WO-1", invoice_id="INV-1"))
    return store


@pytest.fixture
def scheduler() -> ReconciliationScheduler:
    return ReconciliationScheduler(settle_delay=0.01, clock=lambda: NOW)


@pytest_asyncio.fixture
async def engine(store, scheduler):
    """Engine with a fixed clock; delayed recomputes are cancelled afterwards."""
    engine = LifecycleEngine(store, scheduler=scheduler, clock=lambda: NOW)
    yield engine
    await engine.close()
