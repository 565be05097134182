# tests/test_slack_digest.py

from __future__ import annotations

from datetime import date, datetime, timezone

import httpx
import pytest

import slack_digest
from config import AppConfig
from slack_digest import format_digest, is_authorized, run_digest, send_webhook

from .fakes import FakeContactsApi, make_contact

# 00:30 UTC is 09:30 in Tokyo on the same day
NOW = datetime(2024, 6, 3, 0, 30, tzinfo=timezone.utc)


@pytest.fixture()
def sent(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, str]]:
    calls: list[tuple[str, str]] = []

    def fake_send(url: str, text: str) -> bool:
        calls.append((url, text))
        return bool(url)

    monkeypatch.setattr(slack_digest, "send_webhook", fake_send)
    return calls


def _api() -> FakeContactsApi:
    return FakeContactsApi([
        make_contact("1", "2024-06-03", name="Suzuki", purpose="見積り", priority="A"),
        make_contact("2", "2024-06-03", name="Abe", purpose="請求書", priority="A"),
        make_contact("3", "2024-06-03", name="Low", priority="C"),
        make_contact("4", "2024-06-03", name="Done", priority="A", status="completed"),
        make_contact("5", "2024-06-04", name="Tomorrow", priority="A"),
    ])


def test_authorization_only_enforced_in_production_with_secret() -> None:
    dev = AppConfig(cron_secret="s3cret")
    prod = AppConfig(environment="production", cron_secret="s3cret")
    prod_no_secret = AppConfig(environment="production")

    assert is_authorized(None, dev)
    assert is_authorized(None, prod_no_secret)
    assert not is_authorized(None, prod)
    assert not is_authorized("Bearer wrong", prod)
    assert is_authorized("Bearer s3cret", prod)


def test_digest_posts_todays_a_priority_contacts(sent) -> None:
    config = AppConfig(slack_webhook_url="https://hooks.example/T1")

    status, body = run_digest(config, _api(), NOW)

    assert status == 200
    assert body == {
        "success": True,
        "date": "2024-06-03",
        "notified": 2,
        "contacts": [{"name": "Abe", "priority": "A"}, {"name": "Suzuki", "priority": "A"}],
    }
    url, text = sent[0]
    assert url == "https://hooks.example/T1"
    assert "📅 *本日の期日* (2024-06-03)" in text
    assert "• Abe - 請求書" in text
    assert text.index("Abe") < text.index("Suzuki")


def test_today_is_taken_in_the_digest_timezone(sent) -> None:
    late_utc = datetime(2024, 6, 2, 16, 0, tzinfo=timezone.utc)  # already 6/3 01:00 in Tokyo
    config = AppConfig(slack_webhook_url="https://hooks.example/T1")

    status, body = run_digest(config, _api(), late_utc)

    assert status == 200
    assert body["date"] == "2024-06-03"


def test_nothing_due_skips_the_webhook(sent) -> None:
    config = AppConfig(slack_webhook_url="https://hooks.example/T1")

    status, body = run_digest(config, FakeContactsApi(), NOW)

    assert status == 200
    assert body == {"message": "No contacts to notify", "date": "2024-06-03"}
    assert sent == []


def test_store_and_webhook_failures_are_500(sent) -> None:
    api = _api()
    api.fail_queries = True
    assert run_digest(AppConfig(slack_webhook_url="x"), api, NOW) == (500, {"error": "Database error"})

    status, body = run_digest(AppConfig(slack_webhook_url=""), _api(), NOW)
    assert (status, body) == (500, {"error": "Slack notification failed"})


def test_digest_priorities_are_configurable(sent) -> None:
    config = AppConfig(slack_webhook_url="https://hooks.example/T1", digest_priorities=["A", "C"])

    _, body = run_digest(config, _api(), NOW)

    assert body["notified"] == 3
    assert "【優先度A/C】" in sent[0][1]


def test_format_digest_layout() -> None:
    text = format_digest([make_contact("1", "2024-06-03", name="山田", purpose="電話")], date(2024, 6, 3), ["A"])

    assert text.splitlines() == [
        "📅 *本日の期日* (2024-06-03)",
        "",
        "🔴 *【優先度A】* 1件",
        "",
        "• 山田 - 電話",
        "",
        "━━━━━━━━━━━━━━━━━━",
    ]


def test_send_webhook_payload_and_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    posted: list[dict] = []

    def fake_post(url, json=None, timeout=None):
        posted.append(json)
        return httpx.Response(200 if url.endswith("/ok") else 500, text="boom")

    monkeypatch.setattr(slack_digest.httpx, "post", fake_post)

    assert send_webhook("https://hooks.example/ok", "hello") is True
    assert posted[0] == {"text": "hello", "username": "期日管理Bot", "icon_emoji": ":calendar:"}
    assert send_webhook("https://hooks.example/fail", "hello") is False
    assert send_webhook("", "hello") is False


def test_scheduled_run_only_fires_on_matching_minute(write_config, monkeypatch: pytest.MonkeyPatch, sent) -> None:
    write_config(digest_cron="0 9 * * *", slack_webhook_url="https://hooks.example/T1")
    monkeypatch.setattr(slack_digest, "ContactsApi", lambda path=None: _api())

    assert slack_digest._run_if_due(datetime(2024, 6, 3, 0, 0, tzinfo=timezone.utc)) is True
    assert slack_digest._run_if_due(datetime(2024, 6, 3, 0, 1, tzinfo=timezone.utc)) is False
    assert len(sent) == 1
