from __future__ import annotations

import json
import logging
import os
import time
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from injection_rotation.models.kv_store import KeyValueEntry

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """The durable store could not be read or written."""


class StoreLockTimeout(PersistenceError):
    """Another writer kept the history file locked past the timeout."""


class HistoryFileLock:
    """
    Exclusive lock on a history file, held through a sibling ``.lock`` file.
    The lock file carries the holder's pid so a timeout can say who is blocking.
    """

    poll_interval = 0.05

    def __init__(self, path: Path, timeout: float = 5.0):
        self.lock_path = path.with_name(path.name + ".lock")
        self.timeout = timeout
        self._fd: int | None = None

    def holder(self) -> str:
        try:
            return self.lock_path.read_text(encoding="ascii").strip() or "unknown"
        except OSError:
            return "unknown"

    def acquire(self) -> None:
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                self._fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if time.monotonic() >= deadline:
                    raise StoreLockTimeout(
                        f"{self.lock_path.name} still held by pid {self.holder()} after {self.timeout}s"
                    )
                time.sleep(self.poll_interval)
                continue
            os.write(self._fd, str(os.getpid()).encode("ascii"))
            return

    def release(self) -> None:
        if self._fd is None:
            return
        os.close(self._fd)
        self._fd = None
        self.lock_path.unlink(missing_ok=True)

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()


@dataclass
class DataStore:
    data_dir: Path
    lock_timeout: float = 5.0

    def _path(self, filename: str) -> Path:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir / filename

    def read_json(self, filename: str, default: Any) -> Any:
        """Returns a copy of ``default`` when nothing has been written yet."""
        path = self._path(filename)
        with HistoryFileLock(path, self.lock_timeout):
            if not path.exists():
                return deepcopy(default)
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)

    def write_json(self, filename: str, data: Any) -> None:
        path = self._path(filename)
        with HistoryFileLock(path, self.lock_timeout):
            # A failed dump leaves the previous file in place
            tmp_path = path.with_name(path.name + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)


class HistoryBackend(Protocol):
    """Durable storage for one serialized collection under a single key."""

    def load(self) -> list[dict[str, Any]]: ...

    def save(self, records: list[dict[str, Any]]) -> None: ...


class JsonHistoryBackend:
    def __init__(self, store: DataStore, key: str):
        self.store = store
        self.filename = f"{key}.json"

    def load(self) -> list[dict[str, Any]]:
        try:
            raw = self.store.read_json(self.filename, [])
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Could not read {self.filename}: {exc}") from exc
        if not isinstance(raw, list):
            raise PersistenceError(f"{self.filename} does not contain a list of records")
        return raw

    def save(self, records: list[dict[str, Any]]) -> None:
        try:
            self.store.write_json(self.filename, records)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Could not write {self.filename}: {exc}") from exc


class SqlHistoryBackend:
    def __init__(self, engine: Engine, key: str):
        self.engine = engine
        self.key = key

    def load(self) -> list[dict[str, Any]]:
        try:
            with Session(self.engine) as session:
                row = session.execute(
                    select(KeyValueEntry).where(KeyValueEntry.key == self.key)
                ).scalar_one_or_none()
                if row is None:
                    return []
                raw = json.loads(row.value)
        except (SQLAlchemyError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Could not read key {self.key}: {exc}") from exc
        if not isinstance(raw, list):
            raise PersistenceError(f"Key {self.key} does not contain a list of records")
        return raw

    def save(self, records: list[dict[str, Any]]) -> None:
        payload = json.dumps(records, ensure_ascii=False)
        try:
            with Session(self.engine) as session:
                session.merge(
                    KeyValueEntry(key=self.key, value=payload, updated_at=datetime.now(timezone.utc))
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not write key {self.key}: {exc}") from exc
        logger.debug(f"DB PERSIST: {self.key} ({len(records)} records)")


class MemoryHistoryBackend:
    """Volatile backend. Data is lost when the process exits."""

    def __init__(self, records: list[dict[str, Any]] | None = None):
        self.records = deepcopy(records or [])
        self.saves = 0

    def load(self) -> list[dict[str, Any]]:
        return deepcopy(self.records)

    def save(self, records: list[dict[str, Any]]) -> None:
        self.records = deepcopy(records)
        self.saves += 1
