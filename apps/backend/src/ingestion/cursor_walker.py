"""Cursor pagination over a search endpoint, bounded by a page cap."""
import logging
from dataclasses import dataclass, field
from typing import Generic, Optional, Protocol, TypeVar

from constants import MAX_SEARCH_PAGES


logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


@dataclass
class Page(Generic[T]):
    """One decoded page of search results."""

    nodes: list[T] = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class PageFetcher(Protocol[T_co]):
    async def __call__(self, query: str, cursor: Optional[str]) -> "Page[T_co]":
        ...


async def walk(
    fetch_page: PageFetcher[T],
    query: str,
    page_cap: int = MAX_SEARCH_PAGES,
) -> list[T]:
    """
    Fetches pages until the endpoint reports no more results or page_cap
    fetches have been made, whichever comes first.

    Results beyond page_cap are left for a later run. Any error from
    fetch_page aborts the walk and propagates; nothing partial is returned.
    """
    results: list[T] = []
    cursor: Optional[str] = None

    for page_number in range(page_cap):
        page = await fetch_page(query, cursor)
        results.extend(page.nodes)

        if not page.has_more:
            break
        if not page.next_cursor:
            # Refetching with the same cursor would repeat the page
            logger.warning(
                "Search reported more pages without a cursor after page %d", page_number + 1
            )
            break
        cursor = page.next_cursor
    else:
        logger.info("Page cap of %d reached for query %r; remaining pages skipped", page_cap, query)

    return results
