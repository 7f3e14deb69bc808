"""Page arithmetic for the user listing pipeline."""
from __future__ import annotations

from typing import List, Sequence, Tuple, TypeVar

from .errors import InvalidArgumentError
from .models import PaginationInfo

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


def check_page_request(page: int, page_size: int) -> None:
    if page < 1:
        raise InvalidArgumentError("page must be >= 1")
    if page_size < 1:
        raise InvalidArgumentError("page_size must be >= 1")


def paginate(
    items: Sequence[T],
    page: int,
    page_size: int,
    total_count: int,
) -> Tuple[List[T], PaginationInfo]:
    """Slice one page out of ``items`` and describe it.

    ``page`` and ``page_size`` must already have passed
    :func:`check_page_request`. A page past ``total_pages`` yields an empty
    slice here; callers decide whether that is an error by comparing against
    ``info.total_pages``.
    """

    info = PaginationInfo.build(total_count, page, page_size)
    start = (page - 1) * page_size
    return list(items[start : start + page_size]), info


__all__ = ["DEFAULT_PAGE", "DEFAULT_PAGE_SIZE", "check_page_request", "paginate"]
