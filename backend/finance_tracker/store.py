from __future__ import annotations

import copy
import json
import logging
import os
import re
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, settings
from .errors import CorruptStoreError, StoreWriteError

logger = logging.getLogger(__name__)

USERS = "users"
CATEGORIES = "categories"
TRANSACTIONS = "transactions"

_PARTITION_NAME = re.compile(r"^[a-z_]+$")

Record = dict[str, Any]


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _check_partition(partition: str) -> str:
    if not _PARTITION_NAME.match(partition):
        raise ValueError(f"invalid partition name: {partition!r}")
    return partition


def _decode_partition(partition: str, raw: str) -> list[Record]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("partition %s is not valid JSON: %s", partition, exc)
        raise CorruptStoreError(f"partition {partition} is not valid JSON") from exc
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        logger.error("partition %s does not hold a list of records", partition)
        raise CorruptStoreError(f"partition {partition} does not hold a list of records")
    return data


def _encode_partition(partition: str, records: list[Record]) -> str:
    try:
        return json.dumps(records, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise StoreWriteError(f"partition {partition} holds values that cannot be stored: {exc}") from exc


class RecordStore:
    """Durable collections of records, one per named partition.

    Every read and every overwrite of a partition runs under that partition's
    lock. Callers doing load-compute-save hold ``locked(partition)`` across the
    whole cycle; the lock is re-entrant so the inner calls do not deadlock.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, partition: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(partition)
            if lock is None:
                lock = threading.RLock()
                self._locks[partition] = lock
            return lock

    @contextmanager
    def locked(self, partition: str) -> Iterator[None]:
        with self._lock_for(_check_partition(partition)):
            yield

    def load_all(self, partition: str) -> list[Record]:
        with self.locked(partition):
            return self._read(partition)

    def save_all(self, partition: str, records: list[Record]) -> None:
        with self.locked(partition):
            self._write(partition, list(records))

    def _read(self, partition: str) -> list[Record]:
        raise NotImplementedError

    def _write(self, partition: str, records: list[Record]) -> None:
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    def __init__(self) -> None:
        super().__init__()
        self.partitions: dict[str, list[Record]] = {}

    def _read(self, partition: str) -> list[Record]:
        return copy.deepcopy(self.partitions.get(partition, []))

    def _write(self, partition: str, records: list[Record]) -> None:
        # Round-trip through JSON so the memory store rejects what the file store would.
        _encode_partition(partition, records)
        self.partitions[partition] = copy.deepcopy(records)


class JsonFileRecordStore(RecordStore):
    def __init__(self, data_dir: str | Path) -> None:
        super().__init__()
        self.data_dir = Path(data_dir)

    def path_for(self, partition: str) -> Path:
        return self.data_dir / f"{_check_partition(partition)}.json"

    def _read(self, partition: str) -> list[Record]:
        path = self.path_for(partition)
        if not path.exists():
            return []
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            logger.error("partition %s is not UTF-8 text", partition)
            raise CorruptStoreError(f"partition {partition} is not UTF-8 text") from exc
        except OSError as exc:
            logger.error("partition %s could not be read: %s", partition, exc)
            raise CorruptStoreError(f"partition {partition} could not be read") from exc
        return _decode_partition(partition, raw)

    def _write(self, partition: str, records: list[Record]) -> None:
        payload = _encode_partition(partition, records)
        path = self.path_for(partition)
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=path.parent, prefix=f".{partition}.", suffix=".tmp", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            logger.error("writing partition %s failed: %s", partition, exc)
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreWriteError(f"writing partition {partition} failed") from exc


class SqlRecordStore(RecordStore):
    """Partitions kept as JSON documents in a single database table."""

    def __init__(self, database_url: str) -> None:
        super().__init__()
        self.engine: Engine = create_engine(database_url, future=True, pool_pre_ping=True)
        self._ensure_table()

    def _ensure_table(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text(
                        """
                        create table if not exists record_partitions (
                          name varchar(64) primary key,
                          payload text not null,
                          updated_at timestamp not null
                        )
                        """
                    )
                )
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"database error: {exc.__class__.__name__}") from exc

    def _read(self, partition: str) -> list[Record]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("select payload from record_partitions where name = :name"),
                    {"name": partition},
                ).first()
        except SQLAlchemyError as exc:
            logger.error("reading partition %s failed: %s", partition, exc)
            raise CorruptStoreError(f"partition {partition} could not be read") from exc
        if row is None:
            return []
        return _decode_partition(partition, row[0])

    def _write(self, partition: str, records: list[Record]) -> None:
        payload = _encode_partition(partition, records)
        try:
            with self.engine.begin() as conn:
                conn.execute(text("delete from record_partitions where name = :name"), {"name": partition})
                conn.execute(
                    text("insert into record_partitions (name, payload, updated_at) values (:name, :payload, :updated_at)"),
                    {"name": partition, "payload": payload, "updated_at": timestamp()},
                )
        except SQLAlchemyError as exc:
            logger.error("writing partition %s failed: %s", partition, exc)
            raise StoreWriteError(f"database error: {exc.__class__.__name__}") from exc


def get_record_store(config: Settings = settings) -> RecordStore:
    if config.storage_backend == "memory":
        return InMemoryRecordStore()
    if config.storage_backend == "database":
        return SqlRecordStore(config.database_url)
    return JsonFileRecordStore(config.data_dir)
