"""Iteration over paginated listings."""
import logging
from typing import Any, Callable, Iterator

from kumitate.rest.definitions import JSON


logger = logging.getLogger(__name__)


def paginate(fetch_page: Callable[[int], JSON]) -> Iterator[Any]:
    """Yields the items of a paginated listing, in order.

    Pages are fetched lazily, starting at page 1. Iteration stops
    after an empty page, or once as many items have been produced as
    the listing's count says there are.

    Args:
        fetch_page: Function returning a page, given its number. A
                page is an object with an items list and optionally
                a count of all items in the listing.
    """
    page_no = 1
    produced = 0
    while True:
        page = fetch_page(page_no)
        items = page.get('items') or []
        count = page.get('count')
        logger.debug(f'Page {page_no}: {len(items)} items of {count}')
        if not items:
            return

        for item in items:
            yield item
            produced += 1

        if count is not None and produced >= count:
            return
        page_no += 1
