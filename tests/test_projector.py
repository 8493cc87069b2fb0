"""Tests for the optimistic view projector."""

from datetime import timedelta

import pytest

from conftest import T0, make_invoice, make_work_order
from views.projector import Partitions, Tab, partition, unique_by_invoice_id


def ids(invoices) -> list[str]:
    return [invoice.invoice_id for invoice in invoices]


@pytest.fixture
def snapshot():
    """Invoices covering every partition, created an hour apart."""
    return [
        make_invoice("INV-1", created_at=T0),
        make_invoice("INV-2", created_at=T0 + timedelta(hours=1)),
        make_invoice("INV-3", created_at=T0 + timedelta(hours=2), is_picked_up=True),
        make_invoice("INV-4", created_at=T0 + timedelta(hours=3), is_refunded=True),
        make_invoice(
            "INV-5",
            created_at=T0 + timedelta(hours=4),
            is_picked_up=True,
            is_refunded=True,
        ),
    ]


class TestPartition:
    """Partition contents and ordering."""

    def test_active_is_newest_first(self) -> None:
        invoices = [
            make_invoice("INV-1", created_at=T0),
            make_invoice("INV-2", created_at=T0 + timedelta(minutes=5)),
        ]

        views = partition(invoices, [], set())

        assert ids(views.active) == ["INV-2", "INV-1"]

    def test_partitions(self, snapshot) -> None:
        views = partition(snapshot, [], set())

        assert ids(views.active) == ["INV-2", "INV-1"]
        assert ids(views.completed) == ["INV-3"]
        assert ids(views.refunded) == ["INV-5", "INV-4"]

    def test_pending_moves_active_to_completed(self, snapshot) -> None:
        views = partition(snapshot, [], {"INV-1"})

        assert ids(views.active) == ["INV-2"]
        assert ids(views.completed) == ["INV-3", "INV-1"]

    def test_confirmed_and_pending_appear_once(self, snapshot) -> None:
        views = partition(snapshot, [], {"INV-3"})

        assert ids(views.completed) == ["INV-3"]

    def test_pending_refund_stays_refunded(self, snapshot) -> None:
        views = partition(snapshot, [], {"INV-4"})

        assert views.tab_of("INV-4") == Tab.REFUNDED
        assert "INV-4" not in ids(views.completed)

    def test_pending_ids_without_invoice_are_ignored(self, snapshot) -> None:
        views = partition(snapshot, [], {"WO-77"})

        assert len(views.completed) == 1

    def test_refunded_supplied_directly(self) -> None:
        invoices = [make_invoice("INV-1"), make_invoice("INV-2")]
        refunded = [make_invoice("INV-2", is_refunded=True)]

        views = partition(invoices, [], set(), refunded_invoices=refunded)

        assert ids(views.active) == ["INV-1"]
        assert ids(views.refunded) == ["INV-2"]

    def test_disjoint(self, snapshot) -> None:
        views = partition(snapshot, [], {"INV-1", "INV-3", "INV-4"})

        seen = ids(views.active) + ids(views.completed) + ids(views.refunded)
        assert sorted(seen) == sorted(set(seen))
        assert set(seen) == {invoice.invoice_id for invoice in snapshot}

    def test_deterministic(self, snapshot) -> None:
        first = partition(snapshot, [], {"INV-1"})
        second = partition(list(reversed(snapshot)), [], {"INV-1"})

        assert first.to_dict() == second.to_dict()


class TestArchivedPartition:
    """Archived view over both entity kinds."""

    def test_ordered_by_archived_at_with_created_fallback(self) -> None:
        invoices = [
            make_invoice("INV-1", is_archived=True, archived_at=T0 + timedelta(days=1)),
            make_invoice("INV-2", is_archived=True, created_at=T0 + timedelta(days=2)),
            make_invoice("INV-3", is_archived=True, archived_at=T0 + timedelta(days=3)),
        ]

        views = partition([], [], set(), archived_invoices=invoices)

        assert ids(views.archived_invoices) == ["INV-3", "INV-2", "INV-1"]

    def test_derived_from_snapshot_when_not_supplied(self) -> None:
        invoices = [make_invoice("INV-1", is_archived=True, archived_at=T0)]
        work_orders = [
            make_work_order("WO-1", is_archived=True, archived_at=T0),
            make_work_order("WO-2", is_archived=True, archived_at=T0 + timedelta(hours=1)),
            make_work_order("WO-3"),
        ]

        views = partition(invoices, work_orders, set())

        assert ids(views.archived_invoices) == ["INV-1"]
        assert [wo.id for wo in views.archived_work_orders] == ["WO-2", "WO-1"]

    def test_counts(self) -> None:
        views = partition(
            [make_invoice("INV-1")],
            [],
            set(),
            archived_work_orders=[make_work_order("WO-1", is_archived=True)],
        )

        assert views.counts() == {"active": 1, "completed": 0, "refunded": 0, "archived": 1}


class TestHelpers:
    """Small helpers used by the projector."""

    def test_unique_keeps_first(self) -> None:
        first = make_invoice("INV-1", patient_name="first")
        second = make_invoice("INV-1", patient_name="second")

        assert unique_by_invoice_id([first, second]) == [first]

    def test_tab_of_unknown(self) -> None:
        assert Partitions().tab_of("INV-1") is None
