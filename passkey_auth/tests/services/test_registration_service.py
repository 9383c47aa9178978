"""Tests for PasskeyRegistrationService."""

import pytest

from passkey_auth.domain.exceptions import (
    AlreadyEnrolledError,
    SessionExpiredError,
    UnknownIdentityError,
    VerificationFailedError,
)
from passkey_auth.services.ceremony import USER_GESTURE_HINT


class TestInitRegistration:
    def test_options_bound_to_identity(self, registration_service, directory_account, challenge_store):
        start = registration_service.init_registration(directory_account)

        options = start.options
        assert options["rp"] == {"name": "Passkey Authentication", "id": "localhost"}
        assert options["user"]["name"] == directory_account
        assert options["attestation"] == "none"
        assert options["authenticatorSelection"]["residentKey"] == "preferred"
        assert options["authenticatorSelection"]["userVerification"] == "discouraged"
        assert options["challenge"]
        assert start.session_token
        assert len(challenge_store) == 1

    def test_email_is_normalised(self, registration_service, directory_account):
        start = registration_service.init_registration("  Alice@Example.COM ")

        assert start.options["user"]["name"] == directory_account

    def test_unknown_identity(self, registration_service, db_session, challenge_store):
        with pytest.raises(UnknownIdentityError) as exc_info:
            registration_service.init_registration("ghost@example.com")

        assert exc_info.value.message == "No user with this email. Please sign up first."
        assert len(challenge_store) == 0

    def test_already_enrolled_creates_no_session(self, registration_service, enrolled, directory_account, challenge_store):
        with pytest.raises(AlreadyEnrolledError):
            registration_service.init_registration(directory_account)

        assert len(challenge_store) == 0

    def test_disabled_account_is_unknown(self, registration_service, directory_account, db_session):
        from passkey_auth.db import DirectoryAccount

        account = db_session.query(DirectoryAccount).filter_by(email=directory_account).one()
        account.disabled = True
        db_session.commit()

        with pytest.raises(UnknownIdentityError):
            registration_service.init_registration(directory_account)


class TestVerifyRegistration:
    def test_persists_single_credential(
        self, registration_service, credential_repository, directory_account, authenticator
    ):
        start = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(start.options)

        result = registration_service.verify_registration(response, start.session_token)

        assert result.verified is True
        assert result.email == directory_account
        stored = credential_repository.find_by_email(directory_account)
        assert stored.id == result.user_id
        assert stored.credential_id == authenticator.last_credential.credential_id
        assert stored.sign_count == 0
        assert stored.directory_uid == "dir-alice"
        assert stored.transports == ["internal", "hybrid"]
        assert stored.device_type == "single_device"
        assert stored.backed_up is False

    def test_user_handle_is_internal_id(self, registration_service, credential_repository, directory_account, authenticator):
        start = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(start.options)

        result = registration_service.verify_registration(response, start.session_token)

        assert authenticator.last_credential.user_handle == result.user_id.encode("utf-8")

    def test_missing_transports_default_to_internal(
        self, registration_service, credential_repository, directory_account, authenticator
    ):
        authenticator.transports = []
        start = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(start.options)
        del response["response"]["transports"]

        registration_service.verify_registration(response, start.session_token)

        assert credential_repository.find_by_email(directory_account).transports == ["internal"]

    def test_replayed_response_rejected(self, registration_service, directory_account, authenticator):
        start = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(start.options)
        registration_service.verify_registration(response, start.session_token)

        with pytest.raises(SessionExpiredError):
            registration_service.verify_registration(response, start.session_token)

    def test_expired_session(self, registration_service, credential_repository, directory_account, authenticator, clock):
        start = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(start.options)
        clock.advance(301)

        with pytest.raises(SessionExpiredError) as exc_info:
            registration_service.verify_registration(response, start.session_token)

        assert exc_info.value.message == "Registration session expired. Please try again."
        assert credential_repository.find_by_email(directory_account) is None

    def test_wrong_origin_rejected(self, registration_service, credential_repository, directory_account, authenticator):
        start = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(start.options, origin="https://evil.example")

        with pytest.raises(VerificationFailedError) as exc_info:
            registration_service.verify_registration(response, start.session_token)

        assert exc_info.value.reason == VerificationFailedError.INVALID_RESPONSE
        assert credential_repository.find_by_email(directory_account) is None

    def test_challenge_from_other_session_rejected(self, registration_service, directory_account, authenticator):
        first = registration_service.init_registration(directory_account)
        second = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(first.options)

        with pytest.raises(VerificationFailedError):
            registration_service.verify_registration(response, second.session_token)

    def test_failed_verification_consumes_session(self, registration_service, directory_account, authenticator):
        start = registration_service.init_registration(directory_account)
        bad = authenticator.make_credential(start.options, origin="https://evil.example")
        with pytest.raises(VerificationFailedError):
            registration_service.verify_registration(bad, start.session_token)

        good = authenticator.make_credential(start.options)
        with pytest.raises(SessionExpiredError):
            registration_service.verify_registration(good, start.session_token)

    def test_skipped_user_gesture_gets_hint(self, registration_service, directory_account, authenticator):
        authenticator.user_present = False
        start = registration_service.init_registration(directory_account)
        response = authenticator.make_credential(start.options)

        with pytest.raises(VerificationFailedError) as exc_info:
            registration_service.verify_registration(response, start.session_token)

        assert exc_info.value.reason == VerificationFailedError.USER_GESTURE_MISSING
        assert exc_info.value.message == USER_GESTURE_HINT

    def test_garbage_response_is_verification_failure(self, registration_service, directory_account):
        start = registration_service.init_registration(directory_account)
        response = {
            "id": "abc",
            "rawId": "abc",
            "type": "public-key",
            "response": {"clientDataJSON": "e30", "attestationObject": "oA"},
        }

        with pytest.raises(VerificationFailedError):
            registration_service.verify_registration(response, start.session_token)
