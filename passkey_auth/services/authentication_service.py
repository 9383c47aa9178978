"""Passkey authentication ceremony."""

from __future__ import annotations

import json
from typing import Any, Optional

from webauthn import (
    generate_authentication_options,
    options_to_json,
    verify_authentication_response,
)
from webauthn.helpers import base64url_to_bytes
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import PublicKeyCredentialDescriptor, UserVerificationRequirement

from passkey_auth.core.logging import LoggerAdapter, get_logger
from passkey_auth.core.metrics import record_ceremony
from passkey_auth.domain import (
    AuthenticationResult,
    CeremonyPurpose,
    CeremonyStart,
    RelyingParty,
    normalize_email,
)
from passkey_auth.domain.exceptions import (
    DomainError,
    InvalidSessionError,
    NoCredentialError,
    ReplayDetectedError,
    VerificationFailedError,
)
from passkey_auth.repositories import CredentialRepository
from passkey_auth.services.ceremony import (
    GENERIC_FAILURES,
    to_authenticator_transports,
    verification_failure,
)
from passkey_auth.services.challenge_sessions import ChallengeSessionManager
from passkey_auth.services.identity import IdentityDirectory

logger = LoggerAdapter(get_logger(__name__), {"ceremony": "authentication"})


def _is_same_credential(response: dict[str, Any], credential_id: bytes) -> bool:
    raw_id = response.get("rawId") or response.get("id")
    if not isinstance(raw_id, str):
        return False
    try:
        return base64url_to_bytes(raw_id) == credential_id
    except ValueError:
        return False


def check_sign_count(stored: int, reported: int) -> None:
    """Reject an assertion whose counter did not advance.

    Authenticators without counter support report 0 forever; a credential
    that has only ever seen 0 is therefore allowed to keep reporting 0.
    Once any non-zero value has been stored the counter must strictly grow.
    """
    if stored == 0 and reported == 0:
        return
    if reported <= stored:
        raise ReplayDetectedError()


class PasskeyAuthenticationService:
    """Signs an enrolled identity in with its passkey."""

    def __init__(
        self,
        credentials: CredentialRepository,
        directory: IdentityDirectory,
        challenges: ChallengeSessionManager,
        relying_party: RelyingParty,
    ) -> None:
        self.credentials = credentials
        self.directory = directory
        self.challenges = challenges
        self.relying_party = relying_party

    def init_authentication(self, email: str) -> CeremonyStart:
        try:
            start = self._init_authentication(normalize_email(email))
        except DomainError as exc:
            record_ceremony("authentication", "options", exc.code)
            raise
        record_ceremony("authentication", "options", "success")
        return start

    def verify_authentication(
        self, response: dict[str, Any], session_token: Optional[str]
    ) -> AuthenticationResult:
        """Verify an assertion and advance the stored signature counter.

        Raises:
            SessionExpiredError: the session is unknown, expired or already used.
            InvalidSessionError: the session's credential no longer exists.
            VerificationFailedError: signature, challenge, origin or RP id mismatch.
            ReplayDetectedError: the signature counter did not advance.
        """
        try:
            result = self._verify_authentication(response, session_token)
        except DomainError as exc:
            record_ceremony("authentication", "verify", exc.code)
            raise
        record_ceremony("authentication", "verify", "success")
        return result

    def _init_authentication(self, email: str) -> CeremonyStart:
        identity = self.directory.resolve_by_email(email)

        credential = self.credentials.find_by_email(identity.email)
        if credential is None:
            logger.info("No passkey enrolled", extra={"email": identity.email})
            raise NoCredentialError()

        issued = self.challenges.create(
            CeremonyPurpose.AUTHENTICATION,
            subject_user_id=credential.id,
            subject_email=credential.email,
        )

        options = generate_authentication_options(
            rp_id=self.relying_party.rp_id,
            challenge=issued.challenge,
            allow_credentials=[
                PublicKeyCredentialDescriptor(
                    id=credential.credential_id,
                    transports=to_authenticator_transports(credential.transports or []),
                )
            ],
            user_verification=UserVerificationRequirement.DISCOURAGED,
        )

        logger.info("Authentication options issued", extra={"email": credential.email, "user_id": credential.id})
        return CeremonyStart(
            options=json.loads(options_to_json(options)),
            session_token=issued.session_token,
        )

    def _verify_authentication(
        self, response: dict[str, Any], session_token: Optional[str]
    ) -> AuthenticationResult:
        session = self.challenges.consume(session_token, CeremonyPurpose.AUTHENTICATION)

        credential = self.credentials.find_by_internal_id(session.subject_user_id)
        if credential is None:
            logger.warning("Session references a missing credential", extra={"user_id": session.subject_user_id})
            raise InvalidSessionError()

        if not _is_same_credential(response, credential.credential_id):
            logger.warning("Assertion for a different credential", extra={"user_id": credential.id})
            raise VerificationFailedError(GENERIC_FAILURES["authentication"])

        stored_count = credential.sign_count
        try:
            # The counter is checked below against the signed value, so the
            # library's own comparison is neutralised with 0.
            verification = verify_authentication_response(
                credential=response,
                expected_challenge=base64url_to_bytes(session.challenge),
                expected_origin=self.relying_party.origin,
                expected_rp_id=self.relying_party.rp_id,
                credential_public_key=credential.public_key,
                credential_current_sign_count=0,
                require_user_verification=False,
            )
        except (WebAuthnException, ValueError) as exc:
            logger.warning(
                "Assertion rejected",
                extra={"user_id": credential.id, "error": str(exc)},
            )
            raise verification_failure("authentication", exc) from exc

        try:
            check_sign_count(stored_count, verification.new_sign_count)
        except ReplayDetectedError:
            logger.warning(
                "Signature counter did not advance",
                extra={
                    "user_id": credential.id,
                    "stored_count": stored_count,
                    "reported_count": verification.new_sign_count,
                },
            )
            raise

        self.credentials.update_counter(credential.id, verification.new_sign_count)
        identity = self.directory.resolve_by_email(credential.email)

        logger.info("Passkey authentication succeeded", extra={"email": credential.email, "user_id": credential.id})
        return AuthenticationResult(
            verified=True,
            user_id=credential.id,
            email=credential.email,
            directory_uid=identity.uid,
            display_name=identity.display_name or credential.email.split("@")[0],
        )
