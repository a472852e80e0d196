from __future__ import annotations

from typing import Callable, Generator, Sequence, Tuple, TypeVar

T = TypeVar("T")


def paginate(
    fetch: Callable[[str | None], Tuple[Sequence[T], str | None]]
) -> Generator[T, None, None]:
    """
    Yield items from a fetch(cursor) function until the cursor runs out.
    fetch returns (items, next_cursor); for Microsoft Graph the cursor is the
    @odata.nextLink URL. A falsy next_cursor ends pagination.
    """
    cursor: str | None = None
    while True:
        items, next_cursor = fetch(cursor)
        for item in items:
            yield item
        if not next_cursor:
            break
        cursor = next_cursor
