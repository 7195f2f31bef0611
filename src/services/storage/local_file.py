"""
Local File Storage Implementation

DESIGN DECISION: The simplest deployment keeps the books on the same
machine as the app, one JSON document per record kind:

    <data_dir>/categories.json
    <data_dir>/transactions.json
    <data_dir>/settings.json
    <data_dir>/audit.json

Whole files are rewritten after each change. That is fine for the few
hundred records a pondok's treasury produces in a year.

Documents exported by the browser version of the app (camelCase keys,
ISO datetimes in `date`) load unchanged.
"""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from src.models.audit import AuditEvent
from src.models.ledger import (
    Category,
    InstitutionSettings,
    Transaction,
)
from src.services.storage.interface import MalformedRecordError, StorageError
from src.services.storage.memory import InMemoryAuditStorage, InMemoryLedgerStorage


CATEGORIES_FILE = "categories.json"
TRANSACTIONS_FILE = "transactions.json"
SETTINGS_FILE = "settings.json"
AUDIT_FILE = "audit.json"


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to read {path}: {e}")


def _write_json(path: Path, payload: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        tmp_path.replace(path)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}")


class JsonFileLedgerStorage(InMemoryLedgerStorage):
    """
    Ledger storage persisted as JSON documents in a directory.

    Records are loaded once at construction; every mutation rewrites
    the files.
    """

    def __init__(self, data_dir: Path):
        self._data_dir = Path(data_dir)
        try:
            transactions = [
                Transaction.model_validate(item)
                for item in _read_json(self._data_dir / TRANSACTIONS_FILE, [])
            ]
            categories = [
                Category.model_validate(item)
                for item in _read_json(self._data_dir / CATEGORIES_FILE, [])
            ]
            raw_settings = _read_json(self._data_dir / SETTINGS_FILE, None)
            settings = (
                InstitutionSettings.model_validate(raw_settings)
                if raw_settings else None
            )
        except ValidationError as e:
            raise MalformedRecordError(f"Malformed record in {self._data_dir}: {e}")

        super().__init__(
            transactions=transactions,
            categories=categories,
            settings=settings,
        )

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _changed(self) -> None:
        _write_json(
            self._data_dir / TRANSACTIONS_FILE,
            [t.model_dump(mode="json") for t in self._transactions.values()],
        )
        _write_json(
            self._data_dir / CATEGORIES_FILE,
            [c.model_dump(mode="json") for c in self._categories.values()],
        )
        if self._settings is not None:
            _write_json(
                self._data_dir / SETTINGS_FILE,
                self._settings.model_dump(mode="json"),
            )


class JsonFileAuditStorage(InMemoryAuditStorage):
    """Audit log persisted as a JSON array."""

    def __init__(self, data_dir: Path):
        super().__init__()
        self._path = Path(data_dir) / AUDIT_FILE
        try:
            self.events = [
                AuditEvent.model_validate(item)
                for item in _read_json(self._path, [])
            ]
        except ValidationError as e:
            raise MalformedRecordError(f"Malformed audit event in {self._path}: {e}")

    async def append_event(self, event: AuditEvent) -> bool:
        events = self.events + [event]
        _write_json(self._path, [e.model_dump(mode="json") for e in events])
        self.events = events
        return True
