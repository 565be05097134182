# tests/test_auth.py

from __future__ import annotations

from pathlib import Path

import pytest

from auth_service import AuthError, AuthService, hash_password, verify_password


@pytest.fixture()
def auth(db_path: Path) -> AuthService:
    return AuthService(db_path)


def test_password_hash_verifies_and_is_salted() -> None:
    first = hash_password("secret1")
    second = hash_password("secret1")

    assert first != second
    assert verify_password("secret1", first)
    assert not verify_password("secret2", first)
    assert not verify_password("secret1", "garbage")


def test_sign_up_opens_a_session(auth: AuthService) -> None:
    user, token = auth.sign_up("  Taro@Example.com ", "secret1")

    assert user["email"] == "taro@example.com"
    assert auth.user_for_token(token)["id"] == user["id"]


def test_sign_up_validation(auth: AuthService) -> None:
    with pytest.raises(AuthError):
        auth.sign_up("not-an-email", "secret1")
    with pytest.raises(AuthError):
        auth.sign_up("a@example.com", "123")

    auth.sign_up("a@example.com", "secret1")
    with pytest.raises(AuthError):
        auth.sign_up("A@example.com", "secret1")


def test_sign_in_and_out(auth: AuthService) -> None:
    user, _ = auth.sign_up("a@example.com", "secret1")

    with pytest.raises(AuthError):
        auth.sign_in("a@example.com", "wrong-password")

    signed_in, token = auth.sign_in("a@example.com", "secret1")
    assert signed_in["id"] == user["id"]

    auth.sign_out(token)
    assert auth.user_for_token(token) is None
    assert auth.user_for_token(None) is None
