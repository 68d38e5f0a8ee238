# ==============================================
# MongoSampleSource
# ==============================================
#
# PURPOSE:
#   Pull document samples and container facts from MongoDB.
#   Collections are the containers being assessed.
#
# CLASS: MongoSampleSource
# ------------------------
#   Stateful — holds connection to MongoDB.
#
#   Constructor:
#   ------------
#   - __init__(host, port, database, user=None, password=None, sample_strategy="head")
#       "head"   → first N documents in natural order (stable across runs)
#       "random" → $sample aggregation (different documents each run)
#
#   Methods:
#   --------
#   - connect() / disconnect()
#   - fetch_sample(container, max_count) -> Iterator[dict]
#   - describe_container(container, partition_key=None) -> ContainerMetadata
#       Estimated count, collStats size, compound indexes.
#   - list_containers() -> list[str]
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoSampleSource(...) as source:` usage.
#
# ==============================================

import logging
from typing import Any, Iterator, List, Optional

from pymongo import MongoClient as PyMongoClient
from pymongo.errors import ConnectionFailure, OperationFailure

from docmigrate.config import MongoConfig

from .base import ContainerMetadata, SampleSource

logger = logging.getLogger(__name__)


class MongoSampleSource(SampleSource):
    def __init__(self, host, port, database, user=None, password=None, sample_strategy: str = "head"):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.sample_strategy = sample_strategy
        self.client = None

    @classmethod
    def from_config(cls, config: MongoConfig) -> "MongoSampleSource":
        return cls(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            password=config.password,
            sample_strategy=config.sample_strategy,
        )

    def connect(self) -> None:
        try:
            if self.user and self.password:
                uri = f"mongodb://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"
            else:
                uri = f"mongodb://{self.host}:{self.port}/{self.database}"
            self.client = PyMongoClient(uri)
            # Test connection
            self.client.admin.command("ping")
            logger.info("Connected to MongoDB at %s:%s", self.host, self.port)
        except ConnectionFailure as e:
            logger.error("Could not connect to MongoDB: %s", e)
            raise
        except OperationFailure as e:
            logger.error("MongoDB authentication failed: %s", e)
            raise

    def disconnect(self) -> None:
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")
            self.client = None

    def __enter__(self) -> "MongoSampleSource":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    def _db(self):
        if not self.client:
            raise ConnectionError("Not connected to MongoDB.")
        return self.client[self.database]

    def fetch_sample(self, container: str, max_count: int) -> Iterator[Any]:
        collection = self._db()[container]
        if self.sample_strategy == "random":
            cursor = collection.aggregate([{"$sample": {"size": max_count}}])
        else:
            cursor = collection.find({}, limit=max_count)
        try:
            for document in cursor:
                yield document
        finally:
            cursor.close()

    def describe_container(self, container: str, partition_key: Optional[str] = None) -> ContainerMetadata:
        db = self._db()
        collection = db[container]

        size_bytes = None
        try:
            stats = db.command("collStats", container)
            size_bytes = int(stats.get("size", 0))
        except OperationFailure as e:
            logger.debug("collStats unavailable for '%s': %s", container, e)

        composite_indexes: List[List[str]] = []
        for index in collection.index_information().values():
            keys = [name for name, _direction in index.get("key", [])]
            if len(keys) > 1:
                composite_indexes.append(keys)

        return ContainerMetadata(
            name=container,
            partition_key=partition_key,
            document_count=collection.estimated_document_count(),
            size_bytes=size_bytes,
            composite_indexes=composite_indexes,
        )

    def list_containers(self) -> List[str]:
        return sorted(self._db().list_collection_names())
