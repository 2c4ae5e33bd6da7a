"""Unit tests for auth/directory.py -- registration, login and profile rules.

Covers:
- register() stores a lowercase email and a bcrypt hash, returns a token
- duplicate email (any case) and duplicate username raise Conflict
- PublicAccount never carries secret fields
- login() stamps last_login_at; bad credentials raise a generic Unauthenticated
- deactivated accounts cannot log in
- update_profile() re-checks uniqueness excluding the account itself
- a duplicate that slips past the pre-check is caught by the unique index
- delete_account() removes the record
"""

import dataclasses

import pytest

from auth.models import PublicAccount
from auth.tokens import verify_access_token
from core.errors import Conflict, NotFound, Unauthenticated


def test_register_returns_public_account_and_token(directory, account_store):
    public, token = directory.register(email="  Alice@Example.COM ", password="p1", first_name="Alice")
    assert isinstance(public, PublicAccount)
    assert public.email == "alice@example.com"
    assert public.first_name == "Alice"
    assert len(public.id) == 32

    claim = verify_access_token(token)
    assert claim.account_id == public.id

    stored = account_store.get_by_id(public.id)
    assert stored.hashed_password != "p1"
    assert stored.hashed_password.startswith("$2")


def test_public_account_has_no_secret_fields():
    names = {f.name for f in dataclasses.fields(PublicAccount)}
    assert "hashed_password" not in names
    assert "password_reset_token" not in names
    assert "password_reset_expires" not in names


def test_duplicate_email_any_case_conflicts(directory):
    directory.register(email="a@x.com", password="p1")
    with pytest.raises(Conflict) as exc_info:
        directory.register(email="A@X.COM", password="p2")
    assert exc_info.value.message == "User with this email already exists."


def test_duplicate_username_conflicts(directory):
    directory.register(email="a@x.com", password="p1", username="alice")
    with pytest.raises(Conflict) as exc_info:
        directory.register(email="b@x.com", password="p1", username="alice")
    assert exc_info.value.message == "Username already taken."


def test_accounts_without_username_coexist(directory):
    directory.register(email="a@x.com", password="p1")
    directory.register(email="b@x.com", password="p1")


def test_authenticate(directory):
    directory.register(email="a@x.com", password="p1")
    assert directory.authenticate("a@x.com", "p1") is not None
    assert directory.authenticate("A@X.com", "p1") is not None
    assert directory.authenticate("a@x.com", "wrong") is None
    assert directory.authenticate("nobody@x.com", "p1") is None


def test_login_stamps_last_login(directory):
    public, _ = directory.register(email="a@x.com", password="p1")
    assert public.last_login_at is None

    logged_in, token = directory.login("a@x.com", "p1")
    assert isinstance(logged_in, PublicAccount)
    assert logged_in.id == public.id
    assert logged_in.last_login_at is not None
    assert directory.get_public(public.id).last_login_at == logged_in.last_login_at
    assert verify_access_token(token).email == "a@x.com"


def test_login_failures_share_one_message(directory):
    directory.register(email="a@x.com", password="p1")
    with pytest.raises(Unauthenticated) as wrong_password:
        directory.login("a@x.com", "nope")
    with pytest.raises(Unauthenticated) as unknown_email:
        directory.login("ghost@x.com", "p1")
    assert wrong_password.value.message == unknown_email.value.message == "Invalid email or password."


def test_deactivated_account_cannot_log_in(directory, account_store):
    public, _ = directory.register(email="a@x.com", password="p1")
    account_store.update_account(public.id, is_active=False)
    with pytest.raises(Unauthenticated):
        directory.login("a@x.com", "p1")


def test_get_public_unknown_raises_not_found(directory):
    with pytest.raises(NotFound):
        directory.get_public("f" * 32)


def test_update_profile_changes_only_given_fields(directory):
    public, _ = directory.register(email="a@x.com", password="p1", first_name="Alice", last_name="Smith")
    updated = directory.update_profile(public.id, first_name="Alicia", gender="female", dob="1990-01-02")
    assert updated.first_name == "Alicia"
    assert updated.last_name == "Smith"
    assert updated.gender == "female"
    assert updated.dob == "1990-01-02"


def test_update_profile_keeps_own_email_and_username(directory):
    public, _ = directory.register(email="a@x.com", password="p1", username="alice")
    updated = directory.update_profile(public.id, email="A@x.com", username="alice")
    assert updated.email == "a@x.com"
    assert updated.username == "alice"


def test_update_profile_rejects_taken_email_and_username(directory):
    directory.register(email="a@x.com", password="p1", username="alice")
    bob, _ = directory.register(email="b@x.com", password="p1", username="bob")
    with pytest.raises(Conflict):
        directory.update_profile(bob.id, email="a@x.com")
    with pytest.raises(Conflict):
        directory.update_profile(bob.id, username="alice")


def test_delete_account(directory):
    public, _ = directory.register(email="a@x.com", password="p1")
    directory.delete_account(public.id)
    with pytest.raises(NotFound):
        directory.get_public(public.id)
    with pytest.raises(NotFound):
        directory.delete_account(public.id)


def _miss_first_email_lookup(monkeypatch, account_store):
    """Make the next get_by_email() return None, as if a concurrent insert had not landed yet."""
    real = account_store.get_by_email
    calls = []

    def get_by_email(email):
        calls.append(email)
        if len(calls) == 1:
            return None
        return real(email)

    monkeypatch.setattr(account_store, "get_by_email", get_by_email)
    return calls


def test_register_race_on_email_surfaces_as_conflict(directory, account_store, monkeypatch):
    directory.register(email="a@x.com", password="p1")
    calls = _miss_first_email_lookup(monkeypatch, account_store)

    with pytest.raises(Conflict) as exc_info:
        directory.register(email="A@x.com", password="p2")
    assert exc_info.value.message == "User with this email already exists."
    assert len(calls) == 2
    assert account_store.count_accounts() == 1


def test_update_profile_race_on_email_surfaces_as_conflict(directory, account_store, monkeypatch):
    directory.register(email="a@x.com", password="p1")
    bob, _ = directory.register(email="b@x.com", password="p1")
    _miss_first_email_lookup(monkeypatch, account_store)

    with pytest.raises(Conflict) as exc_info:
        directory.update_profile(bob.id, email="a@x.com")
    assert exc_info.value.message == "User with this email already exists."
    assert directory.get_public(bob.id).email == "b@x.com"
