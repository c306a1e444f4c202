"""Filtered, paginated and aggregated list responses."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping

from .filters import FilterSpec
from .paging import PageRequest, PageResult, paginate
from .store import RecordStore, SortSpec

logger = logging.getLogger(__name__)

StatisticsFn = Callable[[Iterator[Dict[str, Any]]], Dict[str, Any]]


@dataclass
class ListResult:
    page: PageResult
    statistics: Dict[str, Any] = field(default_factory=dict)

    @property
    def items(self) -> List[Dict[str, Any]]:
        return self.page.items

    def to_dict(self, serialize: Callable[[Mapping[str, Any]], Any] | None = None) -> Dict[str, Any]:
        items = [serialize(item) for item in self.items] if serialize else list(self.items)
        return {
            "items": items,
            "pagination": self.page.metadata(),
            "statistics": self.statistics,
        }


def run_list_query(
    store: RecordStore,
    spec: FilterSpec,
    page_request: PageRequest,
    *,
    sort: SortSpec,
    statistics: StatisticsFn | None = None,
    fields: Iterable[str] | None = None,
) -> ListResult:
    """Answer one list request.

    Statistics are computed over every record matching ``spec``; the page is
    sliced from the same spec. Count, statistics and page are separate reads
    and may disagree slightly under concurrent writes.
    """

    computed: Dict[str, Any] = {}
    if statistics is not None:
        computed = statistics(store.iter_documents(spec, fields))

    page = paginate(store, spec, sort, page_request)

    logger.debug(
        "Listed %s page %s/%s (%s items)",
        store.name,
        page.current_page,
        page.total_pages,
        page.total_items,
    )
    return ListResult(page=page, statistics=computed)


__all__ = ["ListResult", "StatisticsFn", "run_list_query"]
