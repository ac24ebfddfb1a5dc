"""Cursor-following enumeration of cluster-wide collections."""

from __future__ import annotations

from typing import Callable, Optional

from kb_runner.kube.client import ClusterClient

PAGE_SIZE = 200
MAX_PAGES = 50

PageFetcher = Callable[[int, Optional[str]], Optional[str]]


def walk_pages(fetch_page: PageFetcher, page_size: int = PAGE_SIZE, max_pages: int = MAX_PAGES) -> int:
    """
    Walk a paginated collection once and return the number of pages read.

    ``fetch_page(limit, cursor)`` returns the continuation cursor of the page
    it fetched. The walk ends on an empty cursor or after ``max_pages``.
    """
    cursor: Optional[str] = None
    pages = 0
    while True:
        cursor = fetch_page(page_size, cursor)
        pages += 1
        if not cursor or pages >= max_pages:
            return pages


def walk_pods(client: ClusterClient) -> int:
    return walk_pages(client.list_pods_page)


def walk_services(client: ClusterClient) -> int:
    return walk_pages(client.list_services_page)
