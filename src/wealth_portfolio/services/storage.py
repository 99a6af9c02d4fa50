"""Data persistence: per-user transaction files, user list, and price cache."""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from wealth_portfolio.config.constants import (
    BASE_DIR,
    DEMO_TRANSACTIONS,
    PRICE_CACHE_FILE_NAME,
    USER_DATA_FILE_TEMPLATE,
    USERS_FILE_NAME,
)
from wealth_portfolio.models.core import Operation, operation_from_dict

logger = logging.getLogger(__name__)


class TransactionStore(Protocol):
    def list(self, user_id: str) -> List[Operation]: ...

    def append(self, user_id: str, operation: Operation) -> bool: ...

    def remove(self, user_id: str, operation_id: str) -> bool: ...


def _read_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: Path, data: Any) -> None:
    # write-then-rename so a crash never leaves a truncated file behind
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)
    os.replace(tmp, path)


class JsonTransactionStore:
    """Stores each user's operations in ``portfolio_data_<user>.json`` under ``data_dir``."""

    def __init__(self, data_dir: Union[str, Path, None] = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else BASE_DIR

    def user_data_file(self, user_id: str) -> Path:
        safe = user_id.lower().replace(" ", "_")
        return self.data_dir / USER_DATA_FILE_TEMPLATE.format(user=safe)

    def _load_records(self, user_id: str) -> List[Dict[str, Any]]:
        path = self.user_data_file(user_id)
        if not path.exists():
            return []
        data = _read_json(path)
        return list(data.get("transactions", []))

    def _save_records(self, user_id: str, records: List[Dict[str, Any]]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        _write_json(self.user_data_file(user_id), {"transactions": records})

    def list(self, user_id: str) -> List[Operation]:
        """Load a user's operations in recorded order. Raises on I/O or malformed data."""
        return [operation_from_dict(r) for r in self._load_records(user_id)]

    def append(self, user_id: str, operation: Operation) -> bool:
        """Persist an operation. Re-appending an id already stored is a no-op success."""
        try:
            records = self._load_records(user_id)
            if any(r.get("id") == operation.id for r in records):
                logger.debug("Operation %s already stored for %s", operation.id, user_id)
                return True
            records.append(operation.to_dict(user_id))
            self._save_records(user_id, records)
        except (OSError, ValueError):
            logger.exception("Could not save operation %s for %s", operation.id, user_id)
            return False
        return True

    def remove(self, user_id: str, operation_id: str) -> bool:
        """Delete an operation by id. Removing an id that is already gone succeeds."""
        try:
            records = self._load_records(user_id)
            remaining = [r for r in records if r.get("id") != operation_id]
            if len(remaining) != len(records):
                self._save_records(user_id, remaining)
        except (OSError, ValueError):
            logger.exception("Could not remove operation %s for %s", operation_id, user_id)
            return False
        return True

    # --- users ---

    @property
    def users_file(self) -> Path:
        return self.data_dir / USERS_FILE_NAME

    def load_users(self) -> List[str]:
        """Load list of user ids. Missing or unreadable file yields an empty list."""
        if not self.users_file.exists():
            return []
        try:
            return list(_read_json(self.users_file).get("users", []))
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable users file %s", self.users_file)
            return []

    def add_user(self, user_id: str) -> bool:
        """Register a user. Returns False if it already exists."""
        users = self.load_users()
        if user_id in users:
            return False
        users.append(user_id)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        _write_json(self.users_file, {"users": users})
        return True

    # --- price cache ---

    @property
    def price_cache_file(self) -> Path:
        return self.data_dir / PRICE_CACHE_FILE_NAME

    def load_price_cache(self) -> Dict[str, Any]:
        """Load price cache from file. Returns empty dict on missing or invalid file."""
        if not self.price_cache_file.exists():
            return {}
        try:
            return _read_json(self.price_cache_file)
        except (OSError, ValueError):
            return {}

    def save_price_cache(self, cache: Dict[str, Any]) -> None:
        """Save price cache to file. I/O errors are logged and ignored (the cache is optional)."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            _write_json(self.price_cache_file, cache)
        except OSError:
            logger.warning("Could not write price cache %s", self.price_cache_file)


class InMemoryTransactionStore:
    """Process-local store for demo mode and tests."""

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        self._records: Dict[str, List[Dict[str, Any]]] = {}
        for record in records or ():
            self._records.setdefault(str(record.get("userId")), []).append(copy.deepcopy(record))

    @classmethod
    def demo(cls) -> "InMemoryTransactionStore":
        return cls(DEMO_TRANSACTIONS)

    def list(self, user_id: str) -> List[Operation]:
        return [operation_from_dict(r) for r in self._records.get(user_id, [])]

    def append(self, user_id: str, operation: Operation) -> bool:
        records = self._records.setdefault(user_id, [])
        if not any(r.get("id") == operation.id for r in records):
            records.append(operation.to_dict(user_id))
        return True

    def remove(self, user_id: str, operation_id: str) -> bool:
        records = self._records.get(user_id, [])
        self._records[user_id] = [r for r in records if r.get("id") != operation_id]
        return True

    def load_price_cache(self) -> Dict[str, Any]:
        return {}

    def save_price_cache(self, cache: Dict[str, Any]) -> None:
        pass

