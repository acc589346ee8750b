"""Tests for cursor pagination and the page cap."""
import pytest

from src.core.errors import DecodeError, TransportError
from src.ingestion.cursor_walker import Page, walk


class ScriptedFetcher:
    """Serves pages in order and records the cursors it was asked for."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.cursors = []

    async def __call__(self, query, cursor):
        self.cursors.append(cursor)
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


class EndlessFetcher:
    def __init__(self):
        self.calls = 0

    async def __call__(self, query, cursor):
        self.calls += 1
        return Page(nodes=[f"node-{self.calls}-a", f"node-{self.calls}-b"], next_cursor=f"c{self.calls}", has_more=True)


class TestWalk:

    async def test_stops_after_page_cap_when_endpoint_always_has_more(self):
        fetcher = EndlessFetcher()

        result = await walk(fetcher, "is:issue", page_cap=10)

        assert fetcher.calls == 10
        expected = [f"node-{i}-{s}" for i in range(1, 11) for s in ("a", "b")]
        assert result == expected

    async def test_stops_when_no_more_pages(self):
        fetcher = ScriptedFetcher([
            Page(nodes=[1, 2], next_cursor="abc", has_more=True),
            Page(nodes=[3], next_cursor=None, has_more=False),
        ])

        result = await walk(fetcher, "q", page_cap=10)

        assert result == [1, 2, 3]
        assert fetcher.cursors == [None, "abc"]

    async def test_stops_when_cursor_missing_despite_has_more(self):
        fetcher = ScriptedFetcher([
            Page(nodes=[1], next_cursor=None, has_more=True),
        ])

        result = await walk(fetcher, "q", page_cap=10)

        assert result == [1]
        assert len(fetcher.cursors) == 1

    async def test_transport_error_aborts_walk(self):
        fetcher = ScriptedFetcher([
            Page(nodes=[1], next_cursor="a", has_more=True),
            TransportError("boom"),
        ])

        with pytest.raises(TransportError):
            await walk(fetcher, "q", page_cap=10)

    async def test_decode_error_aborts_walk(self):
        fetcher = ScriptedFetcher([DecodeError("bad page")])

        with pytest.raises(DecodeError):
            await walk(fetcher, "q")

    async def test_zero_page_cap_fetches_nothing(self):
        fetcher = EndlessFetcher()

        assert await walk(fetcher, "q", page_cap=0) == []
        assert fetcher.calls == 0
