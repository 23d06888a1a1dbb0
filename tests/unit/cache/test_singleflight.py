"""
cacheaside - SingleFlight Tests
"""

import asyncio

import pytest

from cacheaside.cache.singleflight import SingleFlight


class TestSingleFlight:
    async def test_single_caller_runs_fn(self) -> None:
        """A lone caller runs the function itself."""
        flight = SingleFlight()

        async def fn() -> str:
            return "value"

        assert await flight.do("k", fn) == ("value", False)
        assert len(flight) == 0
        assert flight.shared == 0

    async def test_concurrent_callers_share_result(self) -> None:
        """Concurrent callers share the leader's result."""
        flight = SingleFlight()
        release = asyncio.Event()
        calls = 0

        async def fn() -> int:
            nonlocal calls
            calls += 1
            await release.wait()
            return 7

        tasks = [asyncio.create_task(flight.do("k", fn)) for _ in range(4)]
        await asyncio.sleep(0)
        assert len(flight) == 1

        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 1
        assert results[0] == (7, False)
        assert results[1:] == [(7, True)] * 3
        assert flight.shared == 3
        assert len(flight) == 0

    async def test_error_reaches_waiters(self) -> None:
        """The leader's error is raised in every waiter."""
        flight = SingleFlight()
        release = asyncio.Event()

        async def fn() -> int:
            await release.wait()
            raise KeyError("gone")

        tasks = [asyncio.create_task(flight.do("k", fn)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, KeyError) for r in results)
        assert len(flight) == 0

    async def test_next_call_after_completion_runs_again(self) -> None:
        """Completed calls are not cached."""
        flight = SingleFlight()
        calls = 0

        async def fn() -> int:
            nonlocal calls
            calls += 1
            return calls

        assert await flight.do("k", fn) == (1, False)
        assert await flight.do("k", fn) == (2, False)

    async def test_cancelled_waiter_does_not_cancel_leader(self) -> None:
        """Cancelling a waiter leaves the leader running."""
        flight = SingleFlight()
        release = asyncio.Event()

        async def fn() -> str:
            await release.wait()
            return "done"

        leader = asyncio.create_task(flight.do("k", fn))
        waiter = asyncio.create_task(flight.do("k", fn))
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        release.set()
        assert await leader == ("done", False)

    async def test_cancelled_leader_hands_over_to_waiter(self) -> None:
        """A waiter takes over when the leader is cancelled."""
        flight = SingleFlight()
        calls = 0

        async def fn() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(3600)
            return "done"

        leader = asyncio.create_task(flight.do("k", fn))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(flight.do("k", fn))
        await asyncio.sleep(0)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader

        assert await waiter == ("done", False)
        assert not waiter.cancelled()
        assert calls == 2
        assert len(flight) == 0

    async def test_waiters_rejoin_the_new_leader(self) -> None:
        """Remaining waiters join whichever waiter took over."""
        flight = SingleFlight()
        release = asyncio.Event()
        calls = 0

        async def fn() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(3600)
            await release.wait()
            return "done"

        leader = asyncio.create_task(flight.do("k", fn))
        await asyncio.sleep(0)
        waiters = [asyncio.create_task(flight.do("k", fn)) for _ in range(3)]
        await asyncio.sleep(0)

        leader.cancel()
        await asyncio.gather(leader, return_exceptions=True)
        release.set()

        results = await asyncio.gather(*waiters)
        assert sorted(results, key=lambda r: r[1]) == [("done", False), ("done", True), ("done", True)]
        assert calls == 2
