from dataclasses import dataclass
from typing import Sequence, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50


def visible_count(total: int, page: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    return min(total, (page + 1) * page_size)


def has_more(total: int, page: int, page_size: int = DEFAULT_PAGE_SIZE) -> bool:
    return visible_count(total, page, page_size) < total


def visible_page(
    items: Sequence[T], page: int, page_size: int = DEFAULT_PAGE_SIZE
) -> list[T]:
    """Everything up to and including ``page`` (pages accumulate)."""
    return list(items[: visible_count(len(items), page, page_size)])


@dataclass
class PageCursor:
    page_size: int = DEFAULT_PAGE_SIZE
    page: int = 0

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("Page size must be positive")

    def reset(self) -> None:
        self.page = 0

    def load_more(self, total: int) -> bool:
        """Advance one page; returns False when everything is already shown."""
        if not self.has_more(total):
            return False
        self.page += 1
        return True

    def visible_count(self, total: int) -> int:
        return visible_count(total, self.page, self.page_size)

    def has_more(self, total: int) -> bool:
        return has_more(total, self.page, self.page_size)

    def window(self, items: Sequence[T]) -> list[T]:
        return visible_page(items, self.page, self.page_size)
