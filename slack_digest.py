"""
Daily digest: today's pending high-priority contacts posted to a Slack incoming webhook.
Runs from the cron HTTP endpoint and, when digest_cron is configured, from an in-process
scheduler thread (5-field cron in digest_timezone).
"""
from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Any

import httpx
from croniter import croniter
from zoneinfo import ZoneInfo

from config import AppConfig
from config import load as load_config
from contacts_api import ContactsApi
from models import Contact

logger = logging.getLogger(__name__)

BOT_USERNAME = "期日管理Bot"
BOT_ICON = ":calendar:"

_scheduler_thread: threading.Thread | None = None
_stop_event: threading.Event | None = None


def digest_today(config: AppConfig, now: datetime | None = None) -> date:
    """Calendar date in the digest timezone."""
    tz = ZoneInfo((config.digest_timezone or "").strip() or "UTC")
    current = now.astimezone(tz) if now is not None else datetime.now(tz)
    return current.date()


def is_authorized(authorization: str | None, config: AppConfig) -> bool:
    """Bearer token must match cron_secret; skipped outside production or when no secret is set."""
    secret = (config.cron_secret or "").strip()
    if not config.is_production or not secret:
        return True
    return (authorization or "") == f"Bearer {secret}"


def format_digest(contacts: list[Contact], day: date, priorities: list[str]) -> str:
    label = "/".join(priorities) or "A"
    lines = [f"📅 *本日の期日* ({day.isoformat()})", "", f"🔴 *【優先度{label}】* {len(contacts)}件", ""]
    lines.extend(f"• {c.name} - {c.purpose}" for c in contacts)
    lines.extend(["", "━━━━━━━━━━━━━━━━━━"])
    return "\n".join(lines)


def send_webhook(url: str, text: str) -> bool:
    """POST the digest to a Slack incoming webhook. Returns True on success."""
    if not url:
        logger.warning("Slack webhook URL is not configured")
        return False
    payload = {"text": text, "username": BOT_USERNAME, "icon_emoji": BOT_ICON}
    try:
        r = httpx.post(url, json=payload, timeout=15.0)
    except httpx.HTTPError as e:
        logger.warning("Slack webhook failed: %s", e)
        return False
    if r.status_code >= 400:
        logger.warning("Slack webhook returned %s: %s", r.status_code, r.text[:200])
        return False
    return True


def run_digest(config: AppConfig, api: ContactsApi, now: datetime | None = None) -> tuple[int, dict[str, Any]]:
    """Query today's contacts and post them. Returns (HTTP status, JSON body)."""
    day = digest_today(config, now)
    priorities = [p.strip().upper() for p in config.digest_priorities if p and p.strip()]
    logger.info("Digest for %s (%s), priorities=%s", day, config.digest_timezone, priorities)
    contacts = api.list_due(day, priorities)
    if contacts is None:
        return 500, {"error": "Database error"}
    if not contacts:
        logger.info("No contacts to notify for %s", day)
        return 200, {"message": "No contacts to notify", "date": day.isoformat()}
    text = format_digest(contacts, day, priorities)
    if not send_webhook(config.slack_webhook_url, text):
        return 500, {"error": "Slack notification failed"}
    logger.info("Notified %d contacts for %s", len(contacts), day)
    return 200, {
        "success": True,
        "date": day.isoformat(),
        "notified": len(contacts),
        "contacts": [{"name": c.name, "priority": c.priority} for c in contacts],
    }


def _run_if_due(now: datetime | None = None) -> bool:
    """Run the digest when digest_cron matches the current minute. Returns True if it ran."""
    config = load_config()
    cron_expr = (config.digest_cron or "").strip()
    if not cron_expr:
        return False
    if not croniter.is_valid(cron_expr):
        logger.warning("Invalid digest cron expression: %s", cron_expr)
        return False
    tz = ZoneInfo((config.digest_timezone or "").strip() or "UTC")
    current = now.astimezone(tz) if now is not None else datetime.now(tz)
    if not croniter.match(cron_expr, current):
        return False
    status, body = run_digest(config, ContactsApi(config.database_path or None), current)
    if status != 200:
        logger.warning("Scheduled digest failed: %s", body)
    return True


def _scheduler_loop() -> None:
    """Check once a minute."""
    while _stop_event and not _stop_event.is_set():
        try:
            _run_if_due()
        except Exception as e:
            logger.warning("Digest cron tick failed: %s", e)
        if _stop_event:
            _stop_event.wait(timeout=60)


def start_digest_scheduler() -> None:
    """Start the background thread that posts the digest on schedule. Idempotent."""
    global _scheduler_thread, _stop_event
    if _scheduler_thread is not None and _scheduler_thread.is_alive():
        return
    _stop_event = threading.Event()
    _scheduler_thread = threading.Thread(target=_scheduler_loop, daemon=True, name="digest-cron")
    _scheduler_thread.start()
    logger.info("Digest cron scheduler started")


def stop_digest_scheduler() -> None:
    """Signal the scheduler thread to stop."""
    global _stop_event
    if _stop_event:
        _stop_event.set()
