"""
tests/test_pool.py

Unit tests for the bounded concurrency pool and the cursor pagination loop.

Coverage
--------
- chunked slicing and size validation
- Output order matches input order regardless of completion order
- Groups run strictly one after another, at most `concurrency` in flight
- Fail-fast: a failing group raises, later groups never start
- Empty input and single-group degenerate cases
- Pagination: follow-up cursors, page order, empty batch short-circuit
"""

from __future__ import annotations

import asyncio

import pytest

from utils.pool import bounded_gather, chunked, fetch_all_pages


class TestChunked:
    def test_splits_into_consecutive_groups(self) -> None:
        assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]

    def test_empty_input_yields_nothing(self) -> None:
        assert list(chunked([], 100)) == []

    def test_size_larger_than_input_is_single_group(self) -> None:
        assert list(chunked(["a", "b"], 100)) == [["a", "b"]]

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestBoundedGather:
    def test_preserves_input_order(self) -> None:
        items = list(range(10))

        async def slow_first(item: int) -> int:
            # earlier items finish later
            await asyncio.sleep((len(items) - item) * 0.001)
            return item * 10

        result = asyncio.run(bounded_gather(items, slow_first, 4))

        assert result == [item * 10 for item in items]

    def test_groups_run_sequentially(self) -> None:
        events: list[tuple[str, int]] = []
        in_flight = 0
        peak = 0

        async def record(item: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            events.append(("start", item))
            await asyncio.sleep(0.001 * (item % 3 + 1))
            events.append(("end", item))
            in_flight -= 1
            return item

        items = list(range(7))
        asyncio.run(bounded_gather(items, record, 3))

        assert peak == 3
        groups = list(chunked(items, 3))
        for previous, current in zip(groups, groups[1:]):
            last_end = max(events.index(("end", item)) for item in previous)
            first_start = min(events.index(("start", item)) for item in current)
            assert first_start > last_end

    def test_concurrency_at_least_length_runs_all_at_once(self) -> None:
        events: list[str] = []

        async def record(item: int) -> int:
            events.append("start")
            await asyncio.sleep(0.001)
            events.append("end")
            return item

        asyncio.run(bounded_gather([1, 2, 3], record, 20))

        assert events[:3] == ["start", "start", "start"]

    def test_empty_input_issues_no_calls(self) -> None:
        calls: list[int] = []

        async def record(item: int) -> int:
            calls.append(item)
            return item

        assert asyncio.run(bounded_gather([], record)) == []
        assert calls == []

    def test_failure_aborts_without_partial_results(self) -> None:
        started: list[int] = []
        finished: list[int] = []

        async def flaky(item: int) -> int:
            started.append(item)
            await asyncio.sleep(0.001)
            if item == 3:
                raise RuntimeError("boom")
            finished.append(item)
            return item

        with pytest.raises(RuntimeError, match="boom"):
            asyncio.run(bounded_gather(list(range(8)), flaky, 2))

        # group [2, 3] fails; groups after it never start
        assert sorted(started) == [0, 1, 2, 3]
        # the sibling in the failing group still ran to completion
        assert 2 in finished

    def test_first_failure_in_input_order_is_raised(self) -> None:
        async def fail(item: int) -> int:
            await asyncio.sleep(0.001 * (5 - item))
            raise ValueError(f"item {item}")

        with pytest.raises(ValueError, match="item 0"):
            asyncio.run(bounded_gather([0, 1, 2], fail, 3))

    def test_rejects_non_positive_concurrency(self) -> None:
        async def identity(item: int) -> int:
            return item

        with pytest.raises(ValueError):
            asyncio.run(bounded_gather([1], identity, 0))


class TestFetchAllPages:
    def test_follows_cursors_and_keeps_page_order(self) -> None:
        pages = {
            None: (["a", "b"], "c1"),
            "c1": (["c"], "c2"),
            "c2": (["d", "e"], None),
        }
        calls: list[tuple[list[str], str | None]] = []

        async def fetch_page(keys, cursor):
            calls.append((list(keys), cursor))
            return pages[cursor]

        result = asyncio.run(fetch_all_pages(fetch_page, ["u1", "u2"]))

        assert result == ["a", "b", "c", "d", "e"]
        assert calls == [(["u1", "u2"], None), (["u1", "u2"], "c1"), (["u1", "u2"], "c2")]

    def test_empty_cursor_terminates(self) -> None:
        calls = 0

        async def fetch_page(keys, cursor):
            nonlocal calls
            calls += 1
            return ["only"], ""

        assert asyncio.run(fetch_all_pages(fetch_page, ["u1"])) == ["only"]
        assert calls == 1

    def test_empty_batch_issues_no_calls(self) -> None:
        async def fetch_page(keys, cursor):
            raise AssertionError("no call expected")

        assert asyncio.run(fetch_all_pages(fetch_page, [])) == []

    def test_resumes_from_given_cursor(self) -> None:
        seen: list[str | None] = []

        async def fetch_page(keys, cursor):
            seen.append(cursor)
            return [cursor], None

        assert asyncio.run(fetch_all_pages(fetch_page, ["u1"], "start")) == ["start"]
        assert seen == ["start"]

    def test_page_failure_aborts_chain(self) -> None:
        seen: list[str | None] = []

        async def fetch_page(keys, cursor):
            seen.append(cursor)
            if cursor == "c1":
                raise ConnectionError("page lost")
            return ["a"], "c1"

        with pytest.raises(ConnectionError):
            asyncio.run(fetch_all_pages(fetch_page, ["u1"]))
        assert seen == [None, "c1"]
