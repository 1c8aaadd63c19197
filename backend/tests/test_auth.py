"""Tests for password hashing and the in-memory auth manager."""

import pytest

from matte.auth.password import PasswordService
from matte.auth.sessions import AuthManager
from matte.auth.types import ANONYMOUS, CallerIdentity
from matte.errors import AuthError


@pytest.fixture
def passwords():
    # Low round count keeps the suite fast
    return PasswordService(rounds=1000)


@pytest.fixture
def auth(passwords):
    return AuthManager(passwords)


class TestPasswordService:
    def test_hash_and_verify(self, passwords):
        hashed = passwords.hash("s3cret")
        assert hashed != "s3cret"
        assert passwords.verify("s3cret", hashed)
        assert not passwords.verify("wrong", hashed)

    def test_hashes_are_salted(self, passwords):
        assert passwords.hash("same") != passwords.hash("same")

    def test_malformed_hash_never_verifies(self, passwords):
        assert not passwords.verify("s3cret", "not-a-hash")

    def test_fresh_hash_needs_no_rehash(self, passwords):
        assert not passwords.needs_rehash(passwords.hash("s3cret"))


class TestRegistration:
    def test_register_user(self, auth):
        auth.register_user("alice", "pw")
        assert auth.registered_users() == ["alice"]

    def test_duplicate_username(self, auth):
        auth.register_user("alice", "pw")
        with pytest.raises(AuthError):
            auth.register_user("alice", "other")

    @pytest.mark.parametrize("username,password", [("", "pw"), ("alice", "")])
    def test_empty_credentials(self, auth, username, password):
        with pytest.raises(AuthError):
            auth.register_user(username, password)


class TestSessions:
    def test_login_returns_token(self, auth):
        auth.register_user("alice", "pw")
        token = auth.login("alice", "pw")

        assert token
        assert auth.validate_session(token) == "alice"
        assert auth.active_session_count() == 1

    def test_login_with_wrong_password(self, auth):
        auth.register_user("alice", "pw")
        assert auth.login("alice", "nope") is None

    def test_login_unknown_user(self, auth):
        assert auth.login("ghost", "pw") is None

    def test_each_login_gets_its_own_token(self, auth):
        auth.register_user("alice", "pw")
        assert auth.login("alice", "pw") != auth.login("alice", "pw")

    def test_caller_for_token(self, auth):
        auth.register_user("alice", "pw")
        token = auth.login("alice", "pw")

        assert auth.caller_for_token(token) == CallerIdentity.user("alice")
        assert auth.caller_for_token("bogus") == ANONYMOUS
        assert auth.caller_for_token(None) == ANONYMOUS

    def test_logout(self, auth):
        auth.register_user("alice", "pw")
        token = auth.login("alice", "pw")
        auth.logout(token)

        assert auth.validate_session(token) is None
        auth.logout(token)
        auth.logout(None)


class TestCallerIdentity:
    def test_anonymous(self):
        assert ANONYMOUS.authenticated is False
        assert ANONYMOUS.username is None

    def test_to_dict(self):
        assert CallerIdentity.user("bob").to_dict() == {"authenticated": True, "username": "bob"}
