"""Next-token pagination shared by the repositories."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from wallet_tracker.exceptions import PaginationLimitError

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_PAGE_ITERATIONS: int = 100


@dataclass
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    next_token: str | None = None  # None on the last page


def collect_pages(
    fetch_page: Callable[[str | None], Page[T]],
    max_iterations: int = DEFAULT_MAX_PAGE_ITERATIONS,
    what: str = "records",
) -> list[T]:
    """
    Follow next tokens until the last page.

    Raises:
        PaginationLimitError: more than `max_iterations` pages were needed
    """
    items: list[T] = []
    token: str | None = None
    for iteration in range(1, max_iterations + 1):
        page: Page[T] = fetch_page(token)
        items.extend(page.items)
        if page.next_token is None:
            logger.debug(f"Loaded {len(items)} {what} in {iteration} pages")
            return items
        token = page.next_token

    logger.error(f"Page loop for {what} hit the {max_iterations} iteration cap")
    raise PaginationLimitError(what, max_iterations)
