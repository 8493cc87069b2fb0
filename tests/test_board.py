"""Tests for the order board view-model."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import NOW, T0, make_invoice, make_work_order
from lifecycle.errors import PersistenceError
from scheduler.reconcile import RecomputeReason
from views.board import OrderBoard, OrderSnapshot
from views.projector import Tab


def snapshot_of(store) -> OrderSnapshot:
    return OrderSnapshot.from_records(store.list_invoices(), store.list_work_orders())


class TestOrderSnapshot:
    """Splitting raw table contents."""

    def test_from_records(self) -> None:
        invoices = [
            make_invoice("INV-1"),
            make_invoice("INV-2", is_refunded=True),
            make_invoice("INV-3", is_archived=True, archived_at=T0),
        ]
        work_orders = [make_work_order("WO-1"), make_work_order("WO-3", is_archived=True)]

        snapshot = OrderSnapshot.from_records(invoices, work_orders)

        assert [i.invoice_id for i in snapshot.invoices] == ["INV-1", "INV-2"]
        assert [i.invoice_id for i in snapshot.refunded_invoices] == ["INV-2"]
        assert [i.invoice_id for i in snapshot.archived_invoices] == ["INV-3"]
        assert [w.id for w in snapshot.work_orders] == ["WO-1"]
        assert [w.id for w in snapshot.archived_work_orders] == ["WO-3"]

    def test_last_edited_defaults_to_newest_edit(self) -> None:
        invoices = [
            make_invoice("INV-1", last_edited_at=T0),
            make_invoice("INV-2", last_edited_at=T0 + timedelta(hours=1)),
        ]

        snapshot = OrderSnapshot.from_records(invoices, [])

        assert snapshot.last_edited_at == T0 + timedelta(hours=1)


class TestOrderBoard:
    """Board recomputation and tab switching."""

    @pytest.mark.asyncio
    async def test_pickup_reflected_immediately(self, engine, store) -> None:
        board = OrderBoard(engine, snapshot_of(store))
        tabs = []
        board.on_change(lambda partitions, tab: tabs.append(tab))
        assert board.partitions.tab_of("INV-1") == Tab.ACTIVE

        task = engine.mark_picked_up("INV-1", True)

        assert board.partitions.tab_of("INV-1") == Tab.COMPLETED
        await task
        assert board.tab == Tab.COMPLETED
        assert tabs[-1] == Tab.COMPLETED

    @pytest.mark.asyncio
    async def test_failed_pickup_returns_to_active(self, engine, store) -> None:
        store.update_invoice = AsyncMock(side_effect=PersistenceError("offline"))
        board = OrderBoard(engine, snapshot_of(store))

        result = await engine.mark_picked_up("INV-1", True)

        assert result.success is False
        assert board.partitions.tab_of("INV-1") == Tab.ACTIVE
        assert board.tab == Tab.ACTIVE

    @pytest.mark.asyncio
    async def test_reload_after_settle(self, engine, store) -> None:
        board = OrderBoard(engine, snapshot_of(store))
        await engine.mark_picked_up("INV-1", True)

        board.load(snapshot_of(store))

        assert engine.pending == frozenset()
        assert [i.invoice_id for i in board.partitions.completed] == ["INV-1"]

    @pytest.mark.asyncio
    async def test_work_order_pickup_pruned_after_reload(self, engine, store) -> None:
        board = OrderBoard(engine, snapshot_of(store))

        result = await engine.mark_picked_up("WO-1", False)
        assert result.success is True
        assert engine.pending == frozenset({"WO-1"})

        board.load(snapshot_of(store))

        assert engine.pending == frozenset()
        assert [i.invoice_id for i in board.partitions.completed] == ["INV-1"]

    @pytest.mark.asyncio
    async def test_work_order_id_does_not_complete_matching_invoice(self, engine, store) -> None:
        store.add_invoice(make_invoice("WO-7"))
        store.add_work_order(make_work_order("WO-7"))
        board = OrderBoard(engine, snapshot_of(store))

        task = engine.mark_picked_up("WO-7", False)

        assert board.partitions.tab_of("WO-7") == Tab.ACTIVE
        await task

    @pytest.mark.asyncio
    async def test_recent_archive_switches_tab(self, engine, store) -> None:
        board = OrderBoard(engine, snapshot_of(store))
        await engine.archive_order(store.get_work_order("WO-1"))

        board.load(snapshot_of(store))

        assert board.tab == Tab.ARCHIVED
        assert board.counts()["archived"] == 2

    @pytest.mark.asyncio
    async def test_external_edit_triggers_recompute(self, engine, store) -> None:
        board = OrderBoard(engine, snapshot_of(store))
        renders = []
        board.on_change(lambda partitions, tab: renders.append(tab))

        edited = OrderSnapshot.from_records(
            store.list_invoices(), store.list_work_orders(), last_edited_at=NOW
        )
        board.load(edited)
        board.load(edited)

        assert engine.scheduler.version == 1
        assert len(renders) == 2

    @pytest.mark.asyncio
    async def test_select_and_close(self, engine, store) -> None:
        board = OrderBoard(engine, snapshot_of(store))
        renders = []
        board.on_change(lambda partitions, tab: renders.append(tab))

        board.select(Tab.REFUNDED)
        board.close()
        engine.scheduler.bump(RecomputeReason.EXTERNAL_EDIT)

        assert renders == [Tab.REFUNDED]
        assert board.tab == Tab.REFUNDED

    @pytest.mark.asyncio
    async def test_listener_error_does_not_stop_others(self, engine, store) -> None:
        board = OrderBoard(engine, snapshot_of(store))
        seen = []

        def broken(partitions, tab):
            raise RuntimeError("render failed")

        board.on_change(broken)
        board.on_change(lambda partitions, tab: seen.append(partitions.counts()))

        board.refresh()

        assert seen == [{"active": 1, "completed": 0, "refunded": 0, "archived": 0}]
