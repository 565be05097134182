"""
No-login persistence: one JSON document holding the record list and the custom category names.
Two record keys exist for compatibility with older saves; both are read, only `contacts` is written.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from models import Contact

logger = logging.getLogger(__name__)

_DEFAULT_PATH = Path(__file__).resolve().parent / "local_store.json"

CONTACTS_KEY = "contacts"
LEGACY_CONTACTS_KEY = "deadlineContacts"
CONTACT_KEYS: tuple[str, ...] = (CONTACTS_KEY, LEGACY_CONTACTS_KEY)
CUSTOM_CATEGORIES_KEY = "customCategories"


def get_store_path() -> Path:
    """Configured local_store_path, or local_store.json beside the code when unset or unreadable."""
    from config import load as load_config

    try:
        path = load_config().local_store_path
    except (OSError, ValueError) as e:
        logger.warning("Could not read config for local store path: %s", e)
        return _DEFAULT_PATH
    return Path(path) if path else _DEFAULT_PATH


class LocalStore:
    """Synchronous key-value store; every key holds a JSON-encoded document."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path else get_store_path()

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def get_item(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    # --- contacts ---

    def _parse_contacts(self, key: str) -> list[Contact]:
        raw = self.get_item(key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Local store key %s is not valid JSON: %s", key, e)
            return []
        out: list[Contact] = []
        for item in items if isinstance(items, list) else []:
            try:
                out.append(Contact.from_local(item))
            except ValidationError as e:
                logger.warning("Skipping unreadable local contact under %s: %s", key, e)
        return out

    def load_contacts(self) -> list[Contact]:
        """Records under the first key that has any (current key first)."""
        for key in CONTACT_KEYS:
            contacts = self._parse_contacts(key)
            if contacts:
                return contacts
        return []

    def save_contacts(self, contacts: list[Contact]) -> None:
        self.set_item(CONTACTS_KEY, json.dumps([c.to_local() for c in contacts], ensure_ascii=False))

    def clear_contacts(self) -> None:
        for key in CONTACT_KEYS:
            self.remove_item(key)

    # --- custom categories ---

    def load_custom_categories(self) -> list[str]:
        raw = self.get_item(CUSTOM_CATEGORIES_KEY)
        if not raw:
            return []
        try:
            names = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return [str(n) for n in names if str(n).strip()] if isinstance(names, list) else []

    def add_custom_category(self, name: str) -> None:
        """Remember a custom category name. Idempotent."""
        name = (name or "").strip()
        if not name:
            return
        names = self.load_custom_categories()
        if name in names:
            return
        names.append(name)
        self.set_item(CUSTOM_CATEGORIES_KEY, json.dumps(names, ensure_ascii=False))
