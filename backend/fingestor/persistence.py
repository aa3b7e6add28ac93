from __future__ import annotations

import json
import logging
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from .schemas import AppConfig, Goal, Investment, RecurringAlert, RecurringSchedule, Transaction
from .store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

NAMESPACE = "fingestor"
STORAGE_KEYS = {
    "transactions": f"{NAMESPACE}.transactions",
    "investments": f"{NAMESPACE}.investments",
    "goals": f"{NAMESPACE}.goals",
    "config": f"{NAMESPACE}.config",
}

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate_items(collection: str, items: Any, model: type[ModelT]) -> list[ModelT]:
    if not isinstance(items, list):
        logger.warning("Stored %s is not a list; ignoring it", collection)
        return []
    valid: list[ModelT] = []
    for index, item in enumerate(items):
        try:
            valid.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping stored %s[%d]: %s", collection, index, exc.errors()[0].get("msg"))
    return valid


class StorageService:
    """Typed access to the four persisted collections.

    Missing keys read as an empty list or the default configuration. Writes
    replace the whole collection and report failure as ``False`` instead of
    raising; the caller keeps its in-memory state either way.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _read(self, collection: str) -> Any:
        try:
            raw = self.store.get(STORAGE_KEYS[collection])
        except StoreError as exc:
            logger.warning("Stored %s is unreadable; treating as missing: %s", collection, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored %s is not valid JSON; treating as missing", collection)
            return None

    def _write(self, collection: str, payload: Any) -> bool:
        try:
            self.store.set(STORAGE_KEYS[collection], json.dumps(payload, ensure_ascii=False))
        except StoreError:
            logger.exception("Failed to persist %s", collection)
            return False
        return True

    def _dump(self, items: Iterable[BaseModel]) -> list[dict[str, Any]]:
        return [item.model_dump(mode="json") for item in items]

    def get_transactions(self) -> list[Transaction]:
        data = self._read("transactions")
        return [] if data is None else _validate_items("transactions", data, Transaction)

    def save_transactions(self, items: Iterable[Transaction]) -> bool:
        return self._write("transactions", self._dump(items))

    def get_investments(self) -> list[Investment]:
        data = self._read("investments")
        return [] if data is None else _validate_items("investments", data, Investment)

    def save_investments(self, items: Iterable[Investment]) -> bool:
        return self._write("investments", self._dump(items))

    def get_goals(self) -> list[Goal]:
        data = self._read("goals")
        return [] if data is None else _validate_items("goals", data, Goal)

    def save_goals(self, items: Iterable[Goal]) -> bool:
        return self._write("goals", self._dump(items))

    def get_config(self) -> AppConfig:
        data = self._read("config")
        if not isinstance(data, dict):
            return AppConfig()
        merged = dict(data)
        merged["alerts"] = _validate_items("alerts", data.get("alerts", []), RecurringAlert)
        merged["recurringSchedules"] = _validate_items(
            "recurringSchedules", data.get("recurringSchedules", []), RecurringSchedule
        )
        try:
            return AppConfig.model_validate(merged)
        except ValidationError as exc:
            bad_fields = {err["loc"][0] for err in exc.errors() if err.get("loc")}
            logger.warning("Resetting invalid config fields to defaults: %s", sorted(map(str, bad_fields)))
            return AppConfig.model_validate({k: v for k, v in merged.items() if k not in bad_fields})

    def save_config(self, config: AppConfig) -> bool:
        return self._write("config", config.model_dump(mode="json"))
