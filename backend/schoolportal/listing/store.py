"""Record store adapters used by the list query service."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import StoreUnavailableError
from .filters import FilterSpec

logger = logging.getLogger(__name__)

SortSpec = Sequence[Tuple[str, int]]


def candidate_ids(record_id: Any) -> List[Any]:
    """Return the id forms a record may be stored under (raw and ObjectId)."""

    candidates: List[Any] = [record_id]
    if isinstance(record_id, str):
        try:
            candidates.append(ObjectId(record_id))
        except (InvalidId, TypeError):
            pass
    return candidates


class RecordStore:
    """Read and write access to one named collection of records."""

    name = "records"

    def count(self, spec: FilterSpec) -> int:
        raise NotImplementedError

    def find(
        self,
        spec: FilterSpec,
        *,
        sort: SortSpec = (),
        skip: int = 0,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def iter_documents(
        self, spec: FilterSpec, fields: Iterable[str] | None = None
    ) -> Iterator[Dict[str, Any]]:
        raise NotImplementedError

    def find_one(self, spec: FilterSpec) -> Dict[str, Any] | None:
        found = self.find(spec, limit=1)
        return found[0] if found else None

    def get(self, record_id: Any) -> Dict[str, Any] | None:
        raise NotImplementedError

    def insert(self, document: Dict[str, Any]) -> Any:
        raise NotImplementedError

    def update(
        self,
        record_id: Any,
        changes: Mapping[str, Any],
        unset: Iterable[str] = (),
    ) -> bool:
        raise NotImplementedError

    def delete(self, record_id: Any) -> bool:
        raise NotImplementedError


class MongoRecordStore(RecordStore):
    """Adapter over a pymongo collection.

    Every driver failure other than a duplicate key surfaces as
    :class:`StoreUnavailableError`.
    """

    def __init__(self, collection: Collection) -> None:
        self.collection = collection
        self.name = collection.name

    def _unavailable(self, action: str) -> StoreUnavailableError:
        logger.exception("Failed to %s '%s' due to MongoDB error", action, self.name)
        return StoreUnavailableError("Database unavailable. Please try again later.")

    def count(self, spec: FilterSpec) -> int:
        try:
            return self.collection.count_documents(spec.to_query())
        except PyMongoError:
            raise self._unavailable("count") from None

    def find(self, spec, *, sort=(), skip=0, limit=None):
        try:
            cursor = self.collection.find(spec.to_query())
            if sort:
                cursor = cursor.sort(list(sort))
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)
        except PyMongoError:
            raise self._unavailable("query") from None

    def iter_documents(self, spec, fields=None):
        projection = {name: 1 for name in fields} if fields else None
        try:
            # Materialised so a failure mid-iteration cannot leak partial results.
            documents = list(self.collection.find(spec.to_query(), projection=projection))
        except PyMongoError:
            raise self._unavailable("scan") from None
        return iter(documents)

    def get(self, record_id):
        try:
            for candidate in candidate_ids(record_id):
                document = self.collection.find_one({"_id": candidate})
                if document:
                    return document
            return None
        except PyMongoError:
            raise self._unavailable("load from") from None

    def insert(self, document):
        try:
            result = self.collection.insert_one(document)
        except DuplicateKeyError:
            raise
        except PyMongoError:
            raise self._unavailable("insert into") from None
        return result.inserted_id

    def update(self, record_id, changes, unset=()):
        update_doc: Dict[str, Any] = {}
        if changes:
            update_doc["$set"] = dict(changes)
        unset_fields = {name: "" for name in unset}
        if unset_fields:
            update_doc["$unset"] = unset_fields
        if not update_doc:
            return False
        try:
            for candidate in candidate_ids(record_id):
                result = self.collection.update_one({"_id": candidate}, update_doc)
                if result.matched_count:
                    return True
            return False
        except DuplicateKeyError:
            raise
        except PyMongoError:
            raise self._unavailable("update") from None

    def delete(self, record_id):
        try:
            for candidate in candidate_ids(record_id):
                result = self.collection.delete_one({"_id": candidate})
                if result.deleted_count:
                    return True
            return False
        except PyMongoError:
            raise self._unavailable("delete from") from None


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Missing values sort first in ascending order, as MongoDB does.
    if value is None:
        return (0, 0)
    if isinstance(value, ObjectId):
        return (1, str(value))
    return (1, value)


class InMemoryRecordStore(RecordStore):
    """List-backed store evaluating the same predicates in Python."""

    def __init__(
        self,
        documents: Iterable[Mapping[str, Any]] = (),
        *,
        name: str = "records",
        unique: Sequence[Tuple[str, ...]] = (),
    ) -> None:
        self.name = name
        self.unique = tuple(tuple(fields) for fields in unique)
        self.documents: List[Dict[str, Any]] = []
        for document in documents:
            self.insert(dict(document))

    def _matching(self, spec: FilterSpec) -> List[Dict[str, Any]]:
        return [document for document in self.documents if spec.matches(document)]

    def count(self, spec):
        return len(self._matching(spec))

    def find(self, spec, *, sort=(), skip=0, limit=None):
        documents = self._matching(spec)
        for field_name, direction in reversed(list(sort)):
            documents.sort(
                key=lambda document: _sort_key(document.get(field_name)),
                reverse=direction == DESCENDING,
            )
        end = skip + limit if limit else None
        return [copy.deepcopy(document) for document in documents[skip:end]]

    def iter_documents(self, spec, fields=None):
        wanted = set(fields) | {"_id"} if fields else None
        for document in self._matching(spec):
            if wanted is None:
                yield copy.deepcopy(document)
            else:
                yield {key: copy.deepcopy(value) for key, value in document.items() if key in wanted}

    def _locate(self, record_id):
        candidates = candidate_ids(record_id)
        for index, document in enumerate(self.documents):
            if document.get("_id") in candidates:
                return index
        return None

    def get(self, record_id):
        index = self._locate(record_id)
        return copy.deepcopy(self.documents[index]) if index is not None else None

    def _check_unique(self, document, ignore_index=None):
        for fields in (("_id",),) + self.unique:
            key = tuple(document.get(name) for name in fields)
            for index, existing in enumerate(self.documents):
                if index == ignore_index:
                    continue
                if tuple(existing.get(name) for name in fields) == key:
                    raise DuplicateKeyError(
                        f"Duplicate key for {', '.join(fields)} in '{self.name}'."
                    )

    def insert(self, document):
        stored = copy.deepcopy(dict(document))
        stored.setdefault("_id", ObjectId())
        self._check_unique(stored)
        self.documents.append(stored)
        document.setdefault("_id", stored["_id"])
        return stored["_id"]

    def update(self, record_id, changes, unset=()):
        index = self._locate(record_id)
        if index is None:
            return False
        updated = copy.deepcopy(self.documents[index])
        updated.update(copy.deepcopy(dict(changes)))
        for name in unset:
            updated.pop(name, None)
        self._check_unique(updated, ignore_index=index)
        self.documents[index] = updated
        return True

    def delete(self, record_id):
        index = self._locate(record_id)
        if index is None:
            return False
        del self.documents[index]
        return True


__all__ = [
    "ASCENDING",
    "DESCENDING",
    "InMemoryRecordStore",
    "MongoRecordStore",
    "RecordStore",
    "SortSpec",
    "candidate_ids",
]
