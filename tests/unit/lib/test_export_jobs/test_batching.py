"""Tests for bounded-concurrency gathering."""

import asyncio

import pytest

from erp_exports.lib.export_jobs.batching import gather_bounded


class TestGatherBounded:
    """Tests for gather_bounded."""

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        def make(i: int):
            async def call() -> int:
                await asyncio.sleep(0.001 * (5 - i))
                return i

            return call

        assert await gather_bounded([make(i) for i in range(5)], limit=5) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self) -> None:
        in_flight = 0
        peak = 0

        async def call() -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1

        await gather_bounded([call] * 12, limit=3)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_first_exception_raised_after_all_complete(self) -> None:
        finished: list[int] = []

        def make(i: int):
            async def call() -> int:
                await asyncio.sleep(0.001)
                finished.append(i)
                if i in (1, 3):
                    msg = f"page {i} failed"
                    raise RuntimeError(msg)
                return i

            return call

        with pytest.raises(RuntimeError, match="page 1 failed"):
            await gather_bounded([make(i) for i in range(5)], limit=2)
        assert sorted(finished) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        assert await gather_bounded([]) == []

    @pytest.mark.asyncio
    async def test_invalid_limit(self) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            await gather_bounded([], limit=0)
