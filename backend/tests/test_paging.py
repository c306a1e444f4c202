"""Pagination arithmetic, parameter parsing and stable ordering."""

from __future__ import annotations

import sys
import unittest
from datetime import datetime
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from schoolportal.listing import (  # noqa: E402
    DESCENDING,
    FilterSpec,
    InMemoryRecordStore,
    InvalidPaginationError,
    PageRequest,
    Scope,
    paginate,
    parse_page_request,
)
from schoolportal.listing.paging import stable_sort, total_pages_for  # noqa: E402

SORT = [("created_at", DESCENDING)]


def _store(count: int) -> InMemoryRecordStore:
    return InMemoryRecordStore(
        {"_id": f"r{index:03d}", "owner": "u1", "created_at": datetime(2024, 1, 1 + index % 28)}
        for index in range(count)
    )


class ParsePageRequestTestCase(unittest.TestCase):
    def test_defaults(self) -> None:
        request = parse_page_request({})

        self.assertEqual(PageRequest(page=1, limit=10), request)

    def test_items_per_page_alias(self) -> None:
        self.assertEqual(25, parse_page_request({"itemsPerPage": "25"}).limit)
        self.assertEqual(20, parse_page_request({"limit": "20", "itemsPerPage": "50"}).limit)

    def test_endpoint_default_limit(self) -> None:
        self.assertEqual(50, parse_page_request({}, default_limit=50).limit)

    def test_rejects_malformed_values(self) -> None:
        cases = [
            {"page": "0"},
            {"page": "-1"},
            {"page": "two"},
            {"page": "1.5"},
            {"page": "1_0"},
            {"page": "+3"},
            {"limit": " 1 0 "},
            {"limit": "0"},
            {"limit": "abc"},
            {"limit": "101"},
            {"itemsPerPage": "-5"},
        ]
        for args in cases:
            with self.subTest(args=args):
                with self.assertRaises(InvalidPaginationError) as ctx:
                    parse_page_request(args)
                self.assertEqual(400, ctx.exception.status_code)
                self.assertEqual("InvalidPagination", ctx.exception.to_dict()["kind"])

    def test_error_names_the_parameter_used(self) -> None:
        with self.assertRaises(InvalidPaginationError) as ctx:
            parse_page_request({"itemsPerPage": "x"})

        self.assertEqual("itemsPerPage", ctx.exception.field)

    def test_page_request_validates_directly(self) -> None:
        with self.assertRaises(InvalidPaginationError):
            PageRequest(page=0, limit=10)
        with self.assertRaises(InvalidPaginationError):
            PageRequest(page=1, limit=0)


class PaginateTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.spec = FilterSpec(Scope.owned_by("owner", "u1"))

    def test_total_pages_is_ceiling(self) -> None:
        for total, limit, expected in [
            (0, 10, 0),
            (1, 10, 1),
            (10, 10, 1),
            (11, 10, 2),
            (99, 25, 4),
            (100, 25, 4),
        ]:
            with self.subTest(total=total, limit=limit):
                self.assertEqual(expected, total_pages_for(total, limit))

    def test_page_sizes(self) -> None:
        store = _store(23)

        sizes = [
            len(paginate(store, self.spec, SORT, PageRequest(page=page, limit=10)).items)
            for page in (1, 2, 3)
        ]

        self.assertEqual([10, 10, 3], sizes)

    def test_empty_result(self) -> None:
        result = paginate(_store(0), self.spec, SORT, PageRequest(page=1, limit=10))

        self.assertEqual([], result.items)
        self.assertEqual(0, result.total_items)
        self.assertEqual(0, result.total_pages)
        self.assertEqual(1, result.current_page)
        self.assertFalse(result.has_next_page)
        self.assertFalse(result.has_prev_page)

    def test_page_past_the_end_is_empty_and_echoed(self) -> None:
        result = paginate(_store(5), self.spec, SORT, PageRequest(page=3, limit=10))

        self.assertEqual([], result.items)
        self.assertEqual(1, result.total_pages)
        self.assertEqual(5, result.total_items)
        self.assertEqual(3, result.current_page)

    def test_metadata_shape(self) -> None:
        result = paginate(_store(12), self.spec, SORT, PageRequest(page=2, limit=5))

        self.assertEqual(
            {
                "currentPage": 2,
                "totalPages": 3,
                "totalItems": 12,
                "itemsPerPage": 5,
                "hasNextPage": True,
                "hasPrevPage": True,
            },
            result.metadata(),
        )

    def test_ties_resolve_by_id_so_pages_do_not_overlap(self) -> None:
        same_time = datetime(2024, 5, 1)
        store = InMemoryRecordStore(
            {"_id": f"r{index:02d}", "owner": "u1", "created_at": same_time}
            for index in (7, 3, 9, 1, 5, 2, 8, 4, 6, 0)
        )

        seen = []
        for page in (1, 2, 3, 4):
            result = paginate(store, self.spec, SORT, PageRequest(page=page, limit=3))
            seen.extend(item["_id"] for item in result.items)

        self.assertEqual(10, len(seen))
        self.assertEqual(len(seen), len(set(seen)))
        self.assertEqual(sorted(seen, reverse=True), seen)

    def test_scope_limits_the_counted_set(self) -> None:
        store = _store(4)
        store.insert({"_id": "other", "owner": "u2", "created_at": datetime(2024, 1, 1)})

        result = paginate(store, self.spec, SORT, PageRequest(page=1, limit=10))

        self.assertEqual(4, result.total_items)
        self.assertNotIn("other", [item["_id"] for item in result.items])


class StableSortTestCase(unittest.TestCase):
    def test_appends_id_in_last_direction(self) -> None:
        self.assertEqual(
            [("created_at", DESCENDING), ("_id", DESCENDING)],
            stable_sort([("created_at", DESCENDING)]),
        )

    def test_keeps_explicit_id(self) -> None:
        self.assertEqual([("_id", 1)], stable_sort([("_id", 1)]))


if __name__ == "__main__":
    unittest.main()
