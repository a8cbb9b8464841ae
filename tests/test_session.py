from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest import IsolatedAsyncioTestCase

from expensebot.conversation.session import ConversationState, SessionStore


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 8, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class SessionStoreTests(IsolatedAsyncioTestCase):
    async def test_idle_sessions_are_not_kept(self) -> None:
        store = SessionStore()
        async with store.acquire(1) as session:
            self.assertTrue(session.is_idle)
        self.assertNotIn(1, store)

    async def test_pending_flow_survives_between_events(self) -> None:
        store = SessionStore()
        async with store.acquire(1) as session:
            session.begin(ConversationState.AWAITING_CATEGORY)
            session.pending_amount = Decimal("1200.00")
        async with store.acquire(1) as session:
            self.assertEqual(session.state, ConversationState.AWAITING_CATEGORY)
            self.assertEqual(session.pending_amount, Decimal("1200.00"))
        self.assertEqual(len(store), 1)

    async def test_begin_discards_previous_flow(self) -> None:
        store = SessionStore()
        async with store.acquire(1) as session:
            session.begin(ConversationState.AWAITING_CATEGORY)
            session.pending_amount = Decimal("10.00")
            session.begin(ConversationState.AWAITING_CUSTOM_RANGE_START)
            self.assertIsNone(session.pending_amount)

    async def test_stale_flow_is_reset_after_idle_timeout(self) -> None:
        clock = FakeClock()
        store = SessionStore(idle_timeout=timedelta(minutes=15), clock=clock)
        async with store.acquire(1) as session:
            session.begin(ConversationState.AWAITING_EXPENSE_AMOUNT)
        clock.now += timedelta(minutes=16)
        async with store.acquire(1) as session:
            self.assertTrue(session.is_idle)

    async def test_events_for_one_user_are_serialised(self) -> None:
        store = SessionStore()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with store.acquire(1):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        self.assertEqual(order, ["a-in", "a-out", "b-in", "b-out"])

    async def test_restore_reverts_snapshot(self) -> None:
        store = SessionStore()
        async with store.acquire(1) as session:
            session.begin(ConversationState.AWAITING_DESCRIPTION)
            session.pending_amount = Decimal("5.00")
            snapshot = session.snapshot()
            session.reset()
            session.restore(snapshot)
            self.assertEqual(session.state, ConversationState.AWAITING_DESCRIPTION)
            self.assertEqual(session.pending_amount, Decimal("5.00"))

    async def test_locks_are_dropped_once_nobody_waits(self) -> None:
        store = SessionStore()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with store.acquire(1):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"), worker("c"))
        self.assertEqual(order, ["a-in", "a-out", "b-in", "b-out", "c-in", "c-out"])
        self.assertEqual(store._locks, {})

        async with store.acquire(2) as session:
            session.begin(ConversationState.AWAITING_EXPENSE_AMOUNT)
        self.assertIn(2, store)
        self.assertEqual(store._locks, {})
