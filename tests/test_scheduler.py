import asyncio
import unittest

from services.price_sync_service import SyncReport
from services.scheduler import PeriodicTask, price_refresh_job


async def _wait_for(predicate, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


class TestPeriodicTask(unittest.TestCase):
    def test_interval_must_be_positive(self):
        async def job():
            return None

        for bad in (0, -1):
            with self.subTest(interval=bad):
                with self.assertRaises(ValueError):
                    PeriodicTask("x", bad, job)

    def test_runs_repeatedly_until_stopped(self):
        calls = []

        async def job():
            calls.append(1)

        async def scenario():
            task = PeriodicTask("tick", 0.01, job)
            task.start()
            self.assertTrue(task.running)
            await _wait_for(lambda: len(calls) >= 3)
            await task.stop()
            self.assertFalse(task.running)
            return task

        task = asyncio.run(scenario())
        self.assertGreaterEqual(task.runs, 3)

    def test_failing_run_does_not_end_the_loop(self):
        calls = []

        async def job():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("upstream down")

        async def scenario():
            task = PeriodicTask("flaky", 0.01, job)
            task.start()
            with self.assertLogs("services.scheduler", level="ERROR"):
                await _wait_for(lambda: len(calls) >= 2)
            await task.stop()

        asyncio.run(scenario())
        self.assertGreaterEqual(len(calls), 2)

    def test_stop_during_initial_delay_skips_the_job(self):
        calls = []

        async def job():
            calls.append(1)

        async def scenario():
            task = PeriodicTask("late", 0.01, job, initial_delay=30)
            task.start()
            await asyncio.sleep(0.02)
            await task.stop()

        asyncio.run(scenario())
        self.assertEqual(calls, [])

    def test_start_twice_keeps_one_loop(self):
        calls = []

        async def job():
            calls.append(1)

        async def scenario():
            task = PeriodicTask("once", 10, job)
            task.start()
            first = task._task
            task.start()
            self.assertIs(task._task, first)
            await _wait_for(lambda: len(calls) >= 1)
            await task.stop()

        asyncio.run(scenario())
        self.assertEqual(len(calls), 1)


class _FakeSession:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class _FakeSynchronizer:
    def __init__(self, exc=None):
        self.exc = exc
        self.sessions = []

    async def refresh_all(self, db):
        self.sessions.append(db)
        if self.exc:
            raise self.exc
        return SyncReport(updated_count=1, outcomes={"AAPL": "updated"})


class TestPriceRefreshJob(unittest.TestCase):
    def test_opens_and_closes_a_session_per_run(self):
        sessions = []

        def factory():
            s = _FakeSession()
            sessions.append(s)
            return s

        sync = _FakeSynchronizer()
        job = price_refresh_job(factory, sync)

        report = asyncio.run(job())
        asyncio.run(job())

        self.assertEqual(report.updated_count, 1)
        self.assertEqual(len(sessions), 2)
        self.assertTrue(all(s.closed for s in sessions))
        self.assertEqual(sync.sessions, sessions)

    def test_session_closed_when_sync_fails(self):
        session = _FakeSession()
        job = price_refresh_job(lambda: session, _FakeSynchronizer(RuntimeError("db gone")))

        with self.assertRaises(RuntimeError):
            asyncio.run(job())
        self.assertTrue(session.closed)


if __name__ == "__main__":
    unittest.main()
