"""Pytest configuration and shared fixtures for SealedStore tests.

Fixtures:
- isolated_env: Removes SEALEDSTORE_* variables and the settings cache (autouse)
- key_path: Key file location inside the test's temporary directory
- fake_mongo_client: In-memory stand-in for pymongo.MongoClient
- fake_s3_client: In-memory stand-in for a boto3 S3 client
- backend: Every storage backend, for contract tests
- restore_root_logger: Reverts root logger changes made by setup_logging
"""

from __future__ import annotations

import io
import logging
import os
from collections.abc import Callable, Generator, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from sealedstore.config import reset_settings
from sealedstore.storage.base import Storage


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep tests independent of the developer's environment and .env file."""
    for name in list(os.environ):
        if name.startswith("SEALEDSTORE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def key_path(tmp_path: Path) -> Path:
    """Key file path that does not exist yet."""
    return tmp_path / "keys" / "key"


@dataclass
class _DeleteResult:
    deleted_count: int


class FakeCollection:
    """Dictionary-backed subset of pymongo.collection.Collection."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        doc = self.documents.get(query["_id"])
        return dict(doc) if doc is not None else None

    def replace_one(self, query: dict[str, Any], doc: dict[str, Any], upsert: bool = False) -> None:
        if query["_id"] in self.documents or upsert:
            self.documents[query["_id"]] = dict(doc)

    def delete_one(self, query: dict[str, Any]) -> _DeleteResult:
        removed = self.documents.pop(query["_id"], None)
        return _DeleteResult(deleted_count=0 if removed is None else 1)

    def count_documents(self, query: dict[str, Any], limit: int = 0) -> int:
        return 1 if query["_id"] in self.documents else 0


class FakeMongoClient:
    """Client whose databases hand out FakeCollections."""

    def __init__(self) -> None:
        self.collections: dict[tuple[str, str], FakeCollection] = {}
        self.closed = False

    def __getitem__(self, database: str) -> Any:
        client = self

        class _Database:
            def __getitem__(self, collection: str) -> FakeCollection:
                return client.collections.setdefault((database, collection), FakeCollection())

        return _Database()

    def close(self) -> None:
        self.closed = True


def make_client_error(code: str, status: int, operation: str) -> ClientError:
    """Build a botocore ClientError the way S3 reports it."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} ({status})"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeS3Client:
    """Dictionary-backed subset of the boto3 S3 client."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.missing_buckets: set[str] = set()

    def put_object(self, Bucket: str, Key: str, Body: bytes) -> dict[str, Any]:
        self.objects[(Bucket, Key)] = bytes(Body)
        return {}

    def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        if (Bucket, Key) not in self.objects:
            raise make_client_error("NoSuchKey", 404, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        self.objects.pop((Bucket, Key), None)
        return {}

    def head_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        if (Bucket, Key) not in self.objects:
            raise make_client_error("404", 404, "HeadObject")
        return {"ContentLength": len(self.objects[(Bucket, Key)])}

    def head_bucket(self, Bucket: str) -> dict[str, Any]:
        if Bucket in self.missing_buckets:
            raise make_client_error("404", 404, "HeadBucket")
        return {}


@pytest.fixture
def client_error() -> Callable[[str, int, str], ClientError]:
    """Factory for S3-style botocore ClientErrors."""
    return make_client_error


@pytest.fixture
def fake_mongo_client() -> FakeMongoClient:
    return FakeMongoClient()


@pytest.fixture
def fake_s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture(params=["file", "sql", "mongodb", "s3"])
def backend(
    request: pytest.FixtureRequest,
    tmp_path: Path,
    fake_mongo_client: FakeMongoClient,
    fake_s3_client: FakeS3Client,
) -> Generator[Storage, None, None]:
    """Each backend implementation, for tests that must pass on all of them."""
    storage: Storage
    if request.param == "file":
        from sealedstore.storage.file import FileStorage

        storage = FileStorage(tmp_path / "data")
    elif request.param == "sql":
        from sealedstore.storage.sql import SQLTableStorage

        storage = SQLTableStorage(f"sqlite:///{tmp_path / 'store.db'}", table="todo_data")
    elif request.param == "mongodb":
        from sealedstore.storage.document import MongoStorage

        storage = MongoStorage("mongodb://localhost:27017", "todo", "data", client=fake_mongo_client)
    else:
        from sealedstore.storage.object import S3Storage

        storage = S3Storage("test-bucket", "us-east-1", client=fake_s3_client)

    yield storage
    storage.close()


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    """Undo setup_logging's changes to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
