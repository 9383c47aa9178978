"""Tests for challenge session issue and redeem."""

from unittest.mock import MagicMock

import pytest
import redis
from webauthn.helpers import bytes_to_base64url

from passkey_auth.domain import CeremonyPurpose, ChallengeSession
from passkey_auth.domain.exceptions import RepositoryUnavailableError, SessionExpiredError
from passkey_auth.services.challenge_sessions import (
    CHALLENGE_BYTES,
    KEY_PREFIX,
    ChallengeSessionManager,
    InMemoryChallengeStore,
    RedisChallengeStore,
)


class TestChallengeSessionManager:
    def test_create_then_consume_returns_bound_session(self, challenge_sessions):
        issued = challenge_sessions.create(
            CeremonyPurpose.REGISTRATION,
            subject_user_id="user-1",
            subject_email="alice@example.com",
            directory_uid="dir-alice",
        )

        session = challenge_sessions.consume(issued.session_token, CeremonyPurpose.REGISTRATION)

        assert len(issued.challenge) == CHALLENGE_BYTES
        assert session.challenge == bytes_to_base64url(issued.challenge)
        assert session.subject_user_id == "user-1"
        assert session.subject_email == "alice@example.com"
        assert session.directory_uid == "dir-alice"
        assert session.purpose is CeremonyPurpose.REGISTRATION

    def test_consume_is_single_use(self, challenge_sessions):
        issued = challenge_sessions.create(CeremonyPurpose.AUTHENTICATION, "user-1", "a@example.com")
        challenge_sessions.consume(issued.session_token, CeremonyPurpose.AUTHENTICATION)

        with pytest.raises(SessionExpiredError):
            challenge_sessions.consume(issued.session_token, CeremonyPurpose.AUTHENTICATION)

    def test_each_create_issues_fresh_challenge_and_token(self, challenge_sessions):
        first = challenge_sessions.create(CeremonyPurpose.REGISTRATION, "u", "a@example.com")
        second = challenge_sessions.create(CeremonyPurpose.REGISTRATION, "u", "a@example.com")

        assert first.challenge != second.challenge
        assert first.session_token != second.session_token
        # Both stay redeemable independently
        challenge_sessions.consume(second.session_token, CeremonyPurpose.REGISTRATION)
        challenge_sessions.consume(first.session_token, CeremonyPurpose.REGISTRATION)

    def test_expired_session_rejected(self, challenge_sessions, clock):
        issued = challenge_sessions.create(CeremonyPurpose.REGISTRATION, "u", "a@example.com")
        clock.advance(301)

        with pytest.raises(SessionExpiredError) as exc_info:
            challenge_sessions.consume(issued.session_token, CeremonyPurpose.REGISTRATION)
        assert exc_info.value.message == "Registration session expired. Please try again."

    def test_session_valid_just_before_ttl(self, challenge_sessions, clock):
        issued = challenge_sessions.create(CeremonyPurpose.AUTHENTICATION, "u", "a@example.com")
        clock.advance(299)

        session = challenge_sessions.consume(issued.session_token, CeremonyPurpose.AUTHENTICATION)
        assert session.subject_user_id == "u"

    def test_expiry_checked_even_if_store_still_holds_entry(self, clock):
        store = InMemoryChallengeStore(clock=lambda: 0.0)  # store never expires anything
        manager = ChallengeSessionManager(store, ttl_seconds=60, clock=clock)
        issued = manager.create(CeremonyPurpose.REGISTRATION, "u", "a@example.com")
        clock.advance(60)

        with pytest.raises(SessionExpiredError):
            manager.consume(issued.session_token, CeremonyPurpose.REGISTRATION)

    def test_purpose_mismatch_rejected_without_touching_session(self, challenge_sessions, challenge_store):
        issued = challenge_sessions.create(CeremonyPurpose.REGISTRATION, "u", "a@example.com")

        with pytest.raises(SessionExpiredError) as exc_info:
            challenge_sessions.consume(issued.session_token, CeremonyPurpose.AUTHENTICATION)
        assert exc_info.value.message.startswith("Authentication session expired")

        # Keys are namespaced by purpose, so the registration entry is untouched
        assert len(challenge_store) == 1
        session = challenge_sessions.consume(issued.session_token, CeremonyPurpose.REGISTRATION)
        assert session.subject_user_id == "u"
        assert len(challenge_store) == 0

    @pytest.mark.parametrize("token", [None, "", "not-a-real-token"])
    def test_missing_or_unknown_token(self, challenge_sessions, token):
        with pytest.raises(SessionExpiredError):
            challenge_sessions.consume(token, CeremonyPurpose.REGISTRATION)

    def test_malformed_entry_treated_as_expired(self, challenge_store, challenge_sessions):
        challenge_store.put(f"{KEY_PREFIX}:registration:broken", "{not json", 300)

        with pytest.raises(SessionExpiredError):
            challenge_sessions.consume("broken", CeremonyPurpose.REGISTRATION)


class TestInMemoryChallengeStore:
    def test_take_removes_entry(self):
        store = InMemoryChallengeStore()
        store.put("k", "v", 60)

        assert store.take("k") == "v"
        assert store.take("k") is None

    def test_expired_entries_purged(self):
        now = [100.0]
        store = InMemoryChallengeStore(clock=lambda: now[0])
        store.put("a", "1", 10)
        store.put("b", "2", 30)
        now[0] = 115.0

        assert len(store) == 1
        assert store.take("a") is None
        assert store.take("b") == "2"


class TestRedisChallengeStore:
    def test_put_sets_expiry(self):
        client = MagicMock()
        RedisChallengeStore(client).put("k", "v", 300)

        client.set.assert_called_once_with("k", "v", ex=300)

    def test_take_uses_getdel(self):
        client = MagicMock()
        client.getdel.return_value = b"payload"

        assert RedisChallengeStore(client).take("k") == "payload"
        client.getdel.assert_called_once_with("k")

    def test_take_missing_key(self):
        client = MagicMock()
        client.getdel.return_value = None

        assert RedisChallengeStore(client).take("k") is None

    def test_redis_errors_surface_as_unavailable(self):
        client = MagicMock()
        client.set.side_effect = redis.ConnectionError("down")
        client.getdel.side_effect = redis.ConnectionError("down")
        store = RedisChallengeStore(client)

        with pytest.raises(RepositoryUnavailableError):
            store.put("k", "v", 300)
        with pytest.raises(RepositoryUnavailableError):
            store.take("k")

    def test_manager_round_trip_through_redis_store(self, clock):
        backing: dict[str, str] = {}
        client = MagicMock()
        client.set.side_effect = lambda key, value, ex: backing.__setitem__(key, value)
        client.getdel.side_effect = lambda key: backing.pop(key, None)
        manager = ChallengeSessionManager(RedisChallengeStore(client), clock=clock)

        issued = manager.create(CeremonyPurpose.AUTHENTICATION, "u", "a@example.com")
        session = manager.consume(issued.session_token, CeremonyPurpose.AUTHENTICATION)

        assert isinstance(session, ChallengeSession)
        assert backing == {}
