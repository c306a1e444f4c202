"""Seed helper that loads sample portal documents into MongoDB."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError
from werkzeug.security import generate_password_hash

ROOT_DIR = Path(__file__).resolve().parent.parent
BACKEND_DIR = ROOT_DIR / "backend"
ENV_PATH = BACKEND_DIR / ".env"
SEED_PATH = Path(__file__).resolve().parent / "seed.json"

if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from schoolportal.config import ConfigError, get_db_name, get_mongo_uri  # noqa: E402
from schoolportal.db import ensure_indexes, unique_fields  # noqa: E402
from schoolportal.listing import InMemoryRecordStore  # noqa: E402
from schoolportal.listing.filters import parse_date_param  # noqa: E402
from schoolportal.validation import DAY_INDEX  # noqa: E402

DATE_FIELDS = ("date", "due_date", "submitted_at", "graded_at", "created_at", "updated_at")


def load_env() -> None:
    if ENV_PATH.exists():
        load_dotenv(ENV_PATH)


def read_seed_file() -> Dict[str, List[Dict[str, Any]]]:
    with SEED_PATH.open("r", encoding="utf-8") as seed_file:
        data = json.load(seed_file)
    if not isinstance(data, dict):
        raise ValueError("Seed file must contain an object of collections")
    return data


def prepare_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Hash plaintext passwords and turn ISO strings into datetimes."""

    prepared = dict(document)

    password = prepared.pop("password", None)
    if password:
        prepared["password_hash"] = generate_password_hash(password)

    for field in DATE_FIELDS:
        value = prepared.get(field)
        if isinstance(value, str) and value:
            prepared[field], _ = parse_date_param(value, param=field)

    if "day_of_week" in prepared and "day_index" not in prepared:
        prepared["day_index"] = DAY_INDEX.get(prepared["day_of_week"], len(DAY_INDEX))

    return prepared


def prepare_collections(
    seed_data: Dict[str, List[Dict[str, Any]]]
) -> Dict[str, List[Dict[str, Any]]]:
    prepared = {}
    for collection_name, documents in seed_data.items():
        if not isinstance(documents, list):
            raise ValueError(f"Seed data for collection '{collection_name}' must be a list")
        prepared[collection_name] = [prepare_document(doc) for doc in documents]
    return prepared


def load_in_memory(
    prepared: Dict[str, List[Dict[str, Any]]]
) -> Dict[str, InMemoryRecordStore]:
    """Insert prepared documents into in-memory stores with the unique indexes applied."""

    stores = {}
    for collection_name, documents in prepared.items():
        store = InMemoryRecordStore(name=collection_name, unique=unique_fields(collection_name))
        for document in documents:
            store.insert(document)
        stores[collection_name] = store
    return stores


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load sample portal data into MongoDB.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="prepare and check the documents in memory without connecting",
    )
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    prepared = prepare_collections(read_seed_file())

    if args.dry_run:
        try:
            stores = load_in_memory(prepared)
        except DuplicateKeyError as exc:
            print(f"Seed data error: {exc}")
            raise SystemExit(1)
        for collection_name, store in stores.items():
            print(f"Would load {len(store.documents)} document(s) into '{collection_name}'")
        return

    load_env()
    try:
        uri = get_mongo_uri()
        db_name = get_db_name()
    except ConfigError as exc:  # pragma: no cover - simple CLI utility
        print(f"Configuration error: {exc}")
        raise SystemExit(1)

    client = MongoClient(uri, serverSelectionTimeoutMS=5000)
    database = client[db_name]

    try:
        for collection_name, documents in prepared.items():
            collection = database[collection_name]
            collection.delete_many({})
            if documents:
                collection.insert_many(documents)
            ensure_indexes(collection)
            print(f"Loaded {len(documents)} document(s) into '{collection_name}' collection")

        print(f"Seeding complete for database '{db_name}'.")
    except PyMongoError as exc:  # pragma: no cover - requires Mongo connection
        print(f"MongoDB error: {exc}")
        raise SystemExit(1)
    finally:
        client.close()


if __name__ == "__main__":
    main()
