from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, settings

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.\-]+$")


class StoreError(Exception):
    pass


class KeyValueStore:
    """String-to-string storage; every ``set`` replaces the whole value."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class FileStore(KeyValueStore):
    """One UTF-8 file per key inside ``data_dir``."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StoreError(f"invalid key: {key!r}")
        return self.data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreError(f"cannot read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            raise StoreError(f"cannot write {path}: {exc}") from exc


class SqlStore(KeyValueStore):
    def __init__(self, database_url: str) -> None:
        self.engine: Engine = create_engine(database_url, future=True, pool_pre_ping=True)
        self._run(
            """
            create table if not exists kv_store (
              key varchar(200) primary key,
              value text not null
            )
            """
        )

    def _run(self, sql: str, params: dict[str, str] | None = None) -> list[dict[str, str]]:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(text(sql), params or {})
                if result.returns_rows:
                    return [dict(row._mapping) for row in result.fetchall()]
                return []
        except SQLAlchemyError as exc:
            raise StoreError(f"sql store error: {exc.__class__.__name__}") from exc

    def get(self, key: str) -> Optional[str]:
        rows = self._run("select value from kv_store where key = :key", {"key": key})
        return rows[0]["value"] if rows else None

    def set(self, key: str, value: str) -> None:
        self._run(
            """
            insert into kv_store (key, value) values (:key, :value)
            on conflict (key) do update set value = excluded.value
            """,
            {"key": key, "value": value},
        )


def get_store(config: Settings = settings) -> KeyValueStore:
    if config.storage_backend == "sql":
        logger.info("Using SQL store (%s)", config.database_url.split(":", 1)[0])
        return SqlStore(config.database_url)
    if config.storage_backend == "file":
        logger.info("Using file store in %s", config.data_dir)
        return FileStore(config.data_dir)
    return InMemoryStore()
