"""MongoDB helpers for the application."""

from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection

from .config import get_db_name, get_mongo_uri
from .listing.store import MongoRecordStore

_MONGO_CLIENT = None
_MONGO_DB = None


def _get_client():
    """Create (or reuse) a MongoDB client using the configured URI."""

    global _MONGO_CLIENT

    if _MONGO_CLIENT is None:
        _MONGO_CLIENT = MongoClient(get_mongo_uri(), serverSelectionTimeoutMS=5000)
    return _MONGO_CLIENT


def get_db():
    """Return the application's MongoDB database instance."""

    global _MONGO_DB

    if _MONGO_DB is None:
        _MONGO_DB = _get_client()[get_db_name()]
    return _MONGO_DB


# Per collection: (name, indexes). Indexes are created once per process.
_INDEXES = {
    "users": [
        IndexModel([("email", ASCENDING)], name="unique_email", unique=True),
        IndexModel([("role", ASCENDING)], name="role_idx", background=True),
    ],
    "announcements": [
        IndexModel(
            [("teacher_id", ASCENDING), ("subject", ASCENDING), ("type", ASCENDING)],
            name="teacher_subject_type",
            background=True,
        ),
        IndexModel(
            [("target_student_ids", ASCENDING), ("status", ASCENDING)],
            name="targets_status",
            background=True,
        ),
        IndexModel([("created_at", DESCENDING)], name="created_desc", background=True),
    ],
    "submissions": [
        IndexModel(
            [("announcement_id", ASCENDING), ("student_id", ASCENDING)],
            name="unique_announcement_student",
            unique=True,
        ),
        IndexModel(
            [("student_id", ASCENDING), ("status", ASCENDING)],
            name="student_status",
            background=True,
        ),
    ],
    "attendance": [
        IndexModel(
            [("student_id", ASCENDING), ("subject", ASCENDING), ("date", ASCENDING)],
            name="unique_student_subject_date",
            unique=True,
        ),
        IndexModel(
            [("teacher_id", ASCENDING), ("date", DESCENDING)],
            name="teacher_date",
            background=True,
        ),
        IndexModel(
            [("subject", ASCENDING), ("date", DESCENDING)],
            name="subject_date",
            background=True,
        ),
    ],
    "schedules": [
        IndexModel(
            [("class_grade", ASCENDING), ("class_section", ASCENDING), ("day_index", ASCENDING)],
            name="class_day",
            background=True,
        ),
        IndexModel(
            [("teacher_id", ASCENDING), ("day_index", ASCENDING), ("start_time", ASCENDING)],
            name="teacher_day_start",
            background=True,
        ),
        IndexModel([("student_ids", ASCENDING)], name="student_ids_idx", background=True),
    ],
}

_indexes_created = set()


def ensure_indexes(collection: Collection) -> None:
    """Create the indexes declared for ``collection`` (no-op when unknown)."""

    indexes = _INDEXES.get(collection.name)
    if indexes:
        collection.create_indexes(indexes)


def unique_fields(name: str):
    """Field tuples of the unique indexes declared for collection ``name``."""

    return tuple(
        tuple(index.document["key"])
        for index in _INDEXES.get(name, [])
        if index.document.get("unique")
    )


def _get_collection(name: str) -> Collection:
    collection = get_db()[name]
    if name not in _indexes_created:
        ensure_indexes(collection)
        _indexes_created.add(name)
    return collection


def get_users_collection() -> Collection:
    """Return the users collection (all roles)."""

    return _get_collection("users")


def get_users_store() -> MongoRecordStore:
    return MongoRecordStore(get_users_collection())


def get_announcements_store() -> MongoRecordStore:
    """Teacher announcements, assignments and quizzes."""

    return MongoRecordStore(_get_collection("announcements"))


def get_submissions_store() -> MongoRecordStore:
    return MongoRecordStore(_get_collection("submissions"))


def get_attendance_store() -> MongoRecordStore:
    return MongoRecordStore(_get_collection("attendance"))


def get_schedules_store() -> MongoRecordStore:
    return MongoRecordStore(_get_collection("schedules"))


__all__ = [
    "ensure_indexes",
    "get_announcements_store",
    "get_attendance_store",
    "get_db",
    "get_schedules_store",
    "get_submissions_store",
    "get_users_collection",
    "get_users_store",
    "unique_fields",
]
