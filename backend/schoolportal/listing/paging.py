"""Utilities for parsing pagination parameters and slicing filtered lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from .. import config
from .errors import InvalidPaginationError
from .filters import FilterSpec
from .store import ASCENDING, RecordStore, SortSpec


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 10

    def __post_init__(self) -> None:
        if self.page < 1:
            raise InvalidPaginationError("page must be ≥ 1.", field="page")
        if self.limit < 1:
            raise InvalidPaginationError("limit must be ≥ 1.", field="limit")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class PageResult:
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1

    def metadata(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalItems": self.total_items,
            "itemsPerPage": self.items_per_page,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }


def _parse_int_arg(
    raw_value: Any,
    *,
    name: str,
    default: int,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if raw_value is None or str(raw_value).strip() == "":
        value = default
    else:
        text = str(raw_value).strip()
        # ASCII digits only: int() also accepts "+3" and "1_0".
        if not (text.isascii() and text.isdigit()):
            raise InvalidPaginationError(f"{name} must be a positive integer.", field=name)
        value = int(text)

    if minimum is not None and value < minimum:
        raise InvalidPaginationError(f"{name} must be ≥ {minimum}.", field=name)
    if maximum is not None and value > maximum:
        raise InvalidPaginationError(f"{name} must be ≤ {maximum}.", field=name)

    return value


def parse_page_request(
    args: Mapping[str, Any],
    *,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> PageRequest:
    """Parse ``page`` and ``limit`` (or ``itemsPerPage``) from request args.

    Malformed values are rejected rather than clamped, on every endpoint.
    """

    max_limit = max_limit or config.MAX_PAGE_SIZE
    default_limit = min(default_limit or config.DEFAULT_PAGE_SIZE, max_limit)

    page = _parse_int_arg(args.get("page"), name="page", default=1, minimum=1)

    limit_param = "limit"
    raw_limit = args.get("limit")
    if raw_limit is None or str(raw_limit).strip() == "":
        limit_param = "itemsPerPage"
        raw_limit = args.get("itemsPerPage")

    limit = _parse_int_arg(
        raw_limit,
        name=limit_param,
        default=default_limit,
        minimum=1,
        maximum=max_limit,
    )

    return PageRequest(page=page, limit=limit)


def stable_sort(sort: SortSpec) -> List[Tuple[str, int]]:
    """Append an ``_id`` tie-breaker so equal keys keep a fixed order."""

    ordered = list(sort)
    if not any(name == "_id" for name, _ in ordered):
        direction = ordered[-1][1] if ordered else ASCENDING
        ordered.append(("_id", direction))
    return ordered


def total_pages_for(total_items: int, limit: int) -> int:
    return (total_items + limit - 1) // limit if total_items else 0


def paginate(
    store: RecordStore,
    spec: FilterSpec,
    sort: SortSpec,
    page_request: PageRequest,
) -> PageResult:
    """Return one page of ``spec``'s matches in ``sort`` order.

    ``current_page`` always echoes the request. Pages past the end are empty.
    """

    total_items = store.count(spec)
    total_pages = total_pages_for(total_items, page_request.limit)

    items: List[Dict[str, Any]] = []
    if page_request.skip < total_items:
        items = store.find(
            spec,
            sort=stable_sort(sort),
            skip=page_request.skip,
            limit=page_request.limit,
        )

    return PageResult(
        current_page=page_request.page,
        total_pages=total_pages,
        total_items=total_items,
        items_per_page=page_request.limit,
        items=items,
    )


__all__ = [
    "PageRequest",
    "PageResult",
    "paginate",
    "parse_page_request",
    "stable_sort",
    "total_pages_for",
]
