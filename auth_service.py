"""
Email/password accounts and cookie sessions. Passwords are stored as salted PBKDF2-SHA256;
a session is a random token row that lives until sign-out.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ulid import ULID

from database import get_connection, init_database

logger = logging.getLogger("auth_service")

_PBKDF2_ITERATIONS = 240_000
_MIN_PASSWORD_LENGTH = 6
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthError(ValueError):
    """Sign-in / sign-up rejected; the message is shown to the user."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def hash_password(password: str, salt: bytes | None = None) -> str:
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt_hex, digest_hex = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), int(iterations))
    return hmac.compare_digest(digest.hex(), digest_hex)


class AuthService:
    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = init_database(Path(db_path) if db_path else None)

    def _new_session(self, conn: Any, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        conn.execute(
            "INSERT INTO sessions (token, user_id, created_at) VALUES (?, ?, ?)",
            (token, user_id, _now_iso()),
        )
        return token

    def sign_up(self, email: str, password: str) -> tuple[dict[str, Any], str]:
        """Create an account and open a session. Returns (user, session token)."""
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise AuthError("メールアドレスの形式が正しくありません")
        if len(password or "") < _MIN_PASSWORD_LENGTH:
            raise AuthError(f"パスワードは{_MIN_PASSWORD_LENGTH}文字以上にしてください")
        user = {"id": str(ULID()), "email": email, "created_at": _now_iso()}
        conn = get_connection(self.db_path)
        try:
            if conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone():
                raise AuthError("このメールアドレスは既に登録されています")
            conn.execute(
                "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (user["id"], email, hash_password(password), user["created_at"]),
            )
            token = self._new_session(conn, user["id"])
            conn.commit()
        finally:
            conn.close()
        logger.info("Signed up user %s", user["id"])
        return user, token

    def sign_in(self, email: str, password: str) -> tuple[dict[str, Any], str]:
        email = (email or "").strip().lower()
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT id, email, password_hash, created_at FROM users WHERE email = ?", (email,)
            ).fetchone()
            if not row or not verify_password(password or "", row["password_hash"]):
                raise AuthError("メールアドレスまたはパスワードが正しくありません")
            token = self._new_session(conn, row["id"])
            conn.commit()
        finally:
            conn.close()
        return {"id": row["id"], "email": row["email"], "created_at": row["created_at"]}, token

    def sign_out(self, token: str | None) -> None:
        if not token:
            return
        conn = get_connection(self.db_path)
        try:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            conn.commit()
        finally:
            conn.close()

    def user_for_token(self, token: str | None) -> dict[str, Any] | None:
        """The signed-in user for a session token, or None."""
        if not token:
            return None
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                """SELECT u.id, u.email, u.created_at FROM sessions s
                   JOIN users u ON u.id = s.user_id WHERE s.token = ?""",
                (token,),
            ).fetchone()
        finally:
            conn.close()
        return dict(row) if row else None
