# tests/conftest.py

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Callable

import pytest

import config
from contacts_api import ContactsApi
from date_utils import FixedClock
from local_store import LocalStore

from .fakes import FakeContactsApi

TODAY = date(2024, 6, 3)  # a Monday


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(TODAY, now="2024-06-03T01:00:00.000000Z")


@pytest.fixture()
def local_store(tmp_path: Path) -> LocalStore:
    return LocalStore(tmp_path / "local_store.json")


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "deadlines.db"


@pytest.fixture()
def contacts_api(db_path: Path) -> ContactsApi:
    """Real SQLite-backed store in a temp file."""
    return ContactsApi(db_path)


@pytest.fixture()
def fake_api() -> FakeContactsApi:
    return FakeContactsApi()


@pytest.fixture()
def write_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., config.AppConfig]:
    """
    Point config.load() at a temp config.json and write the given overrides into it.
    Store paths default to the temp directory so nothing touches the project dir.
    """
    path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", path)

    def _write(**overrides: Any) -> config.AppConfig:
        data: dict[str, Any] = {
            "database_path": str(tmp_path / "deadlines.db"),
            "local_store_path": str(tmp_path / "local_store.json"),
        }
        data.update(overrides)
        path.write_text(json.dumps(data))
        return config.load()

    return _write


@pytest.fixture()
def client_factory(write_config, clock: FixedClock, monkeypatch: pytest.MonkeyPatch):
    """
    Build a TestClient for the web app with a fixed clock and a fresh service registry.
    """
    from fastapi.testclient import TestClient

    import web_app

    monkeypatch.setattr(web_app, "_clock", lambda cfg: clock)
    web_app.reset_services()

    def _make(**overrides: Any) -> TestClient:
        write_config(**overrides)
        return TestClient(web_app.app)

    yield _make
    web_app.reset_services()
