"""
tests/test_user_service.py -- Unit tests for auth/service.py UserService.

The service runs against an in-memory store and a TTLCache driven by a
FakeClock, so cache staleness rules can be checked without sleeping.

Coverage:
  - register: defaults, representative rules, duplicate email/phone, email case
  - login: success, uniform failure message, representative activity stamp
  - oauth_login: new account, existing account linking, phone conflict
  - token resolution, read-through cache, write-then-read freshness
  - profile/admin updates, change_password, verify, delete, password reset
"""

from __future__ import annotations

import pytest

from auth.models import Role
from core.errors import (
    BadRequestError,
    ConflictError,
    FeatureNotImplementedError,
    InvalidTokenError,
    NotFoundError,
    UnauthorizedError,
)


def _register(service, email="a@x.com", password="secret1", name="Ann", **kwargs):
    return service.register(email=email, password=password, name=name, **kwargs)


class TestRegister:
    def test_new_user_gets_defaults_and_token(self, service):
        result = _register(service)
        assert result.user.email == "a@x.com"
        assert result.user.role == Role.USER.value
        assert result.user.balance == 10
        assert result.user.verified is False
        assert result.user.is_representative is False
        assert service.tokens.verify(result.token)["sub"] == result.user.id

    def test_public_user_has_no_password_hash(self, service):
        result = _register(service)
        assert not hasattr(result.user, "hashed_password")

    def test_representative_role_and_zero_balance(self, service):
        result = _register(service, is_representative=True, position="Deputy", party="Green")
        assert result.user.role == Role.REPRESENTATIVE.value
        assert result.user.is_representative is True
        assert result.user.balance == 0
        assert result.user.position == "Deputy"

    def test_duplicate_email_conflict(self, service, store):
        _register(service)
        with pytest.raises(ConflictError, match="User already exists"):
            _register(service, name="Other")
        assert store.count_users() == 1

    def test_email_is_case_insensitive(self, service):
        _register(service, email="Ann@X.com")
        with pytest.raises(ConflictError):
            _register(service, email="ann@x.com")

    def test_duplicate_phone_conflict(self, service):
        _register(service, phone="+79990000001")
        with pytest.raises(ConflictError):
            _register(service, email="b@x.com", phone="+79990000001")

    def test_concurrent_duplicate_loses_on_unique_constraint(self, service, store, monkeypatch):
        """A racing registration that passed the lookup still gets 409 and writes nothing."""
        _register(service)
        monkeypatch.setattr(store, "get_by_email", lambda email: None)
        with pytest.raises(ConflictError, match="User already exists"):
            _register(service, name="Racer")
        assert store.count_users() == 1

    def test_password_is_stored_hashed(self, service, store):
        result = _register(service)
        stored = store.get_by_id(result.user.id)
        assert stored.hashed_password != "secret1"


class TestLogin:
    def test_login_returns_same_user(self, service):
        registered = _register(service)
        result = service.login("a@x.com", "secret1")
        assert result.user.id == registered.user.id
        assert service.tokens.verify(result.token)["sub"] == registered.user.id

    def test_login_ignores_email_case(self, service):
        _register(service)
        assert service.login("A@X.COM", "secret1").user.email == "a@x.com"

    def test_wrong_password_and_unknown_email_share_message(self, service):
        _register(service)
        with pytest.raises(UnauthorizedError) as wrong:
            service.login("a@x.com", "wrong")
        with pytest.raises(UnauthorizedError) as unknown:
            service.login("ghost@x.com", "secret1")
        assert wrong.value.message == unknown.value.message == "Invalid credentials"

    def test_representative_login_stamps_last_activity(self, service):
        _register(service, is_representative=True)
        result = service.login("a@x.com", "secret1")
        assert result.user.last_activity is not None

    def test_regular_login_leaves_last_activity_empty(self, service):
        _register(service)
        assert service.login("a@x.com", "secret1").user.last_activity is None


class TestOAuthLogin:
    def test_creates_verified_passwordless_account(self, service, store):
        result = service.oauth_login("github", "gh-1", "o@x.com", "Oleg")
        assert result.user.verified is True
        assert result.user.balance == 10
        assert result.user.oauth_provider == "github"
        assert store.get_by_id(result.user.id).hashed_password is None

    def test_oauth_account_cannot_password_login(self, service):
        service.oauth_login("github", "gh-1", "o@x.com", "Oleg")
        with pytest.raises(UnauthorizedError):
            service.login("o@x.com", "anything")

    def test_existing_email_is_linked_not_duplicated(self, service, store):
        registered = _register(service)
        result = service.oauth_login("google", "g-7", "a@x.com", "Ann")
        assert result.user.id == registered.user.id
        assert result.user.oauth_provider == "google"
        assert store.count_users() == 1

    def test_second_provider_does_not_relink(self, service, store):
        first = service.oauth_login("github", "gh-1", "o@x.com", "Oleg")
        service.oauth_login("google", "g-9", "o@x.com", "Oleg")
        assert store.get_by_id(first.user.id).oauth_subject == "gh-1"

    def test_phone_conflict_on_new_account(self, service):
        _register(service, phone="+79990000001")
        with pytest.raises(ConflictError):
            service.oauth_login("vk", "vk-1", "new@x.com", "New", phone="+79990000001")


class TestTokenResolution:
    def test_get_user_from_token(self, service):
        registered = _register(service)
        assert service.get_user_from_token(registered.token).id == registered.user.id

    def test_bad_token_is_invalid(self, service):
        with pytest.raises(InvalidTokenError):
            service.get_user_from_token("garbage")

    def test_token_for_deleted_user_is_not_found(self, service, store):
        registered = _register(service)
        store.delete_user(registered.user.id)
        service.cache.flush_all()
        with pytest.raises(NotFoundError):
            service.get_user_from_token(registered.token)


class TestCaching:
    def test_find_populates_cache(self, service, store):
        uid = _register(service).user.id
        service.cache.flush_all()
        assert service.find_user_by_id(uid).id == uid
        assert service.cache.has(f"user:{uid}")

    def test_find_serves_from_cache_within_ttl(self, service, store):
        uid = _register(service).user.id
        service.find_user_by_id(uid)
        # Out-of-band write the service does not know about.
        store.update_user(uid, name="Changed")
        assert service.find_user_by_id(uid).name == "Ann"

    def test_cache_entry_expires_after_user_ttl(self, service, store, clock):
        uid = _register(service).user.id
        service.find_user_by_id(uid)
        store.update_user(uid, name="Changed")
        clock.advance(301)
        assert service.find_user_by_id(uid).name == "Changed"

    def test_read_after_update_is_fresh(self, service):
        uid = _register(service).user.id
        service.find_user_by_id(uid)
        service.update_profile(uid, name="Anna")
        assert service.find_user_by_id(uid).name == "Anna"

    def test_missing_user_returns_none(self, service):
        assert service.find_user_by_id("missing") is None


class TestUpdates:
    def test_update_profile_rejects_admin_fields(self, service):
        uid = _register(service).user.id
        with pytest.raises(BadRequestError):
            service.update_profile(uid, balance=1000)

    def test_update_profile_phone_conflict(self, service):
        _register(service, phone="+79990000001")
        other = _register(service, email="b@x.com").user.id
        with pytest.raises(ConflictError):
            service.update_profile(other, phone="+79990000001")

    def test_keeping_own_phone_is_not_a_conflict(self, service):
        uid = _register(service, phone="+79990000001").user.id
        assert service.update_profile(uid, phone="+79990000001", district="North").district == "North"

    def test_profile_field_can_be_cleared(self, service):
        uid = _register(service, district="Central").user.id
        assert service.update_profile(uid, district=None).district is None

    def test_update_user_role_sets_representative_flag(self, service):
        uid = _register(service).user.id
        user = service.update_user(uid, role=Role.REPRESENTATIVE.value)
        assert user.role == Role.REPRESENTATIVE.value
        assert user.is_representative is True
        user = service.update_user(uid, role=Role.USER.value)
        assert user.is_representative is False

    def test_update_user_email_conflict(self, service):
        _register(service)
        uid = _register(service, email="b@x.com").user.id
        with pytest.raises(ConflictError):
            service.update_user(uid, email="A@x.com")

    def test_update_user_unknown_field(self, service):
        uid = _register(service).user.id
        with pytest.raises(BadRequestError):
            service.update_user(uid, hashed_password="x")

    def test_blank_phone_is_cleared_to_null(self, service, store):
        first = _register(service, phone="+79990000001").user.id
        second = _register(service, email="b@x.com", phone="+79990000002").user.id
        assert service.update_profile(first, phone="").phone is None
        assert service.update_profile(second, phone="").phone is None
        assert store.get_by_id(first).phone is None

    def test_email_taken_between_check_and_write_is_conflict(self, service, store, monkeypatch):
        _register(service)
        uid = _register(service, email="b@x.com").user.id
        monkeypatch.setattr(store, "get_by_email", lambda email: None)
        with pytest.raises(ConflictError):
            service.update_user(uid, email="a@x.com")
        assert store.get_by_id(uid).email == "b@x.com"

    def test_empty_update_rejected(self, service):
        uid = _register(service).user.id
        with pytest.raises(BadRequestError, match="No fields to update"):
            service.update_profile(uid)

    def test_update_missing_user(self, service):
        with pytest.raises(NotFoundError):
            service.update_user("missing", name="Nobody")

    def test_verify_user(self, service):
        uid = _register(service).user.id
        assert service.verify_user(uid).verified is True


class TestChangePassword:
    def test_new_password_works_old_does_not(self, service):
        uid = _register(service).user.id
        service.change_password(uid, "secret1", "secret2")
        assert service.login("a@x.com", "secret2").user.id == uid
        with pytest.raises(UnauthorizedError):
            service.login("a@x.com", "secret1")

    def test_wrong_current_password(self, service):
        uid = _register(service).user.id
        with pytest.raises(BadRequestError, match="Current password is incorrect"):
            service.change_password(uid, "nope", "secret2")

    def test_oauth_only_account_has_no_current_password(self, service):
        uid = service.oauth_login("github", "gh-1", "o@x.com", "Oleg").user.id
        with pytest.raises(BadRequestError):
            service.change_password(uid, "", "secret2")


class TestDelete:
    def test_delete_evicts_cache(self, service):
        admin = _register(service, email="boss@x.com").user.id
        uid = _register(service).user.id
        service.find_user_by_id(uid)
        service.delete_user(admin, uid)
        assert service.find_user_by_id(uid) is None

    def test_cannot_delete_self(self, service):
        uid = _register(service).user.id
        with pytest.raises(BadRequestError, match="You cannot delete your own account"):
            service.delete_user(uid, uid)

    def test_delete_missing_user(self, service):
        uid = _register(service).user.id
        with pytest.raises(NotFoundError):
            service.delete_user(uid, "missing")


class TestPasswordReset:
    def test_request_reset_is_silent_for_unknown_email(self, service):
        assert service.request_password_reset("ghost@x.com") is None

    def test_reset_not_implemented(self, service):
        with pytest.raises(FeatureNotImplementedError):
            service.reset_password("token", "secret2")


def test_representatives_listing(service):
    _register(service, email="r1@x.com", name="Rep One", is_representative=True)
    _register(service, email="u@x.com", name="Plain")
    reps = service.get_representatives()
    assert [r.email for r in reps] == ["r1@x.com"]
