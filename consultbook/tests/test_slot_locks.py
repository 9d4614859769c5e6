"""Tests for SlotLockRegistry."""
from __future__ import annotations

import asyncio
import datetime as dt
import unittest

from consultbook.scheduling.locks import SlotLockRegistry

DAY = dt.date(2026, 10, 20)


def _run(coro):
    return asyncio.run(coro)


class TestSlotLockRegistry(unittest.TestCase):
    def test_same_key_is_serialized(self):
        locks = SlotLockRegistry()
        order = []

        async def worker(name):
            async with locks.hold("r1", DAY):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        async def scenario():
            await asyncio.gather(worker("a"), worker("b"))

        _run(scenario())
        self.assertEqual(order, ["a-in", "a-out", "b-in", "b-out"])

    def test_different_keys_run_concurrently(self):
        locks = SlotLockRegistry()

        async def scenario():
            async with locks.hold("r1", DAY):
                self.assertTrue(locks.is_held("r1", DAY))
                self.assertFalse(locks.is_held("r2", DAY))
                self.assertFalse(locks.is_held("r1", DAY + dt.timedelta(days=1)))
                async with locks.hold("r2", DAY):
                    self.assertEqual(len(locks), 2)

        _run(scenario())

    def test_entries_are_pruned(self):
        locks = SlotLockRegistry()

        async def scenario():
            async with locks.hold("r1", DAY):
                self.assertEqual(len(locks), 1)

        _run(scenario())
        self.assertEqual(len(locks), 0)

    def test_released_on_error(self):
        locks = SlotLockRegistry()

        async def scenario():
            with self.assertRaises(RuntimeError):
                async with locks.hold("r1", DAY):
                    raise RuntimeError("boom")
            self.assertFalse(locks.is_held("r1", DAY))
            async with locks.hold("r1", DAY):
                return True

        self.assertTrue(_run(scenario()))
        self.assertEqual(len(locks), 0)


if __name__ == "__main__":
    unittest.main()
