"""Filter, paginate and aggregate record lists."""

from .errors import (
    ErrorKind,
    InvalidFilterError,
    InvalidPaginationError,
    ListQueryError,
    ScopeViolationError,
    StoreUnavailableError,
)
from .filters import Condition, DateRangeFilter, FieldFilter, FilterSpec, Scope, build_filter_spec
from .paging import PageRequest, PageResult, paginate, parse_page_request
from .service import ListResult, run_list_query
from .store import ASCENDING, DESCENDING, InMemoryRecordStore, MongoRecordStore, RecordStore

__all__ = [
    "ASCENDING",
    "Condition",
    "DESCENDING",
    "DateRangeFilter",
    "ErrorKind",
    "FieldFilter",
    "FilterSpec",
    "InMemoryRecordStore",
    "InvalidFilterError",
    "InvalidPaginationError",
    "ListQueryError",
    "ListResult",
    "MongoRecordStore",
    "PageRequest",
    "PageResult",
    "RecordStore",
    "Scope",
    "ScopeViolationError",
    "StoreUnavailableError",
    "build_filter_spec",
    "paginate",
    "parse_page_request",
    "run_list_query",
]
