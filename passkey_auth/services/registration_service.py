"""Passkey registration ceremony."""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional

from webauthn import generate_registration_options, options_to_json, verify_registration_response
from webauthn.helpers import base64url_to_bytes
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AttestationConveyancePreference,
    AuthenticatorSelectionCriteria,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from passkey_auth.core.logging import LoggerAdapter, get_logger
from passkey_auth.core.metrics import record_ceremony
from passkey_auth.db import PasskeyCredential
from passkey_auth.domain import (
    CeremonyPurpose,
    CeremonyStart,
    RegistrationResult,
    RelyingParty,
    normalize_email,
)
from passkey_auth.domain.exceptions import AlreadyEnrolledError, DomainError
from passkey_auth.repositories import CredentialRepository
from passkey_auth.services.ceremony import response_transports, verification_failure
from passkey_auth.services.challenge_sessions import ChallengeSessionManager
from passkey_auth.services.identity import IdentityDirectory

logger = LoggerAdapter(get_logger(__name__), {"ceremony": "registration"})


class PasskeyRegistrationService:
    """Enrolls the one passkey an identity may hold."""

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

    def init_registration(self, email: str) -> CeremonyStart:
        """Issue creation options for ``email``.

        Nothing is stored when the identity is unknown or already enrolled.
        """
        try:
            start = self._init_registration(normalize_email(email))
        except DomainError as exc:
            record_ceremony("registration", "options", exc.code)
            raise
        record_ceremony("registration", "options", "success")
        return start

    def verify_registration(
        self, response: dict[str, Any], session_token: Optional[str]
    ) -> RegistrationResult:
        """Check the attestation against the session and persist the new credential."""
        try:
            result = self._verify_registration(response, session_token)
        except DomainError as exc:
            record_ceremony("registration", "verify", exc.code)
            raise
        record_ceremony("registration", "verify", "success")
        return result

    def _init_registration(self, email: str) -> CeremonyStart:
        identity = self.directory.resolve_by_email(email)

        if self.credentials.find_by_email(identity.email) is not None:
            logger.info("Registration refused, credential exists", extra={"email": identity.email})
            raise AlreadyEnrolledError()

        user_id = str(uuid.uuid4())
        issued = self.challenges.create(
            CeremonyPurpose.REGISTRATION,
            subject_user_id=user_id,
            subject_email=identity.email,
            directory_uid=identity.uid,
        )

        options = generate_registration_options(
            rp_id=self.relying_party.rp_id,
            rp_name=self.relying_party.rp_name,
            user_id=user_id.encode("utf-8"),
            user_name=identity.email,
            user_display_name=identity.email,
            challenge=issued.challenge,
            attestation=AttestationConveyancePreference.NONE,
            authenticator_selection=AuthenticatorSelectionCriteria(
                authenticator_attachment=None,
                resident_key=ResidentKeyRequirement.PREFERRED,
                user_verification=UserVerificationRequirement.DISCOURAGED,
            ),
        )

        logger.info("Registration options issued", extra={"email": identity.email, "user_id": user_id})
        return CeremonyStart(
            options=json.loads(options_to_json(options)),
            session_token=issued.session_token,
        )

    def _verify_registration(
        self, response: dict[str, Any], session_token: Optional[str]
    ) -> RegistrationResult:
        session = self.challenges.consume(session_token, CeremonyPurpose.REGISTRATION)

        try:
            verification = verify_registration_response(
                credential=response,
                expected_challenge=base64url_to_bytes(session.challenge),
                expected_origin=self.relying_party.origin,
                expected_rp_id=self.relying_party.rp_id,
                require_user_verification=False,
            )
        except (WebAuthnException, ValueError) as exc:
            logger.warning(
                "Attestation rejected",
                extra={"email": session.subject_email, "error": str(exc)},
            )
            raise verification_failure("registration", exc) from exc

        credential = PasskeyCredential(
            id=session.subject_user_id,
            email=session.subject_email,
            directory_uid=session.directory_uid,
            credential_id=verification.credential_id,
            public_key=verification.credential_public_key,
            sign_count=verification.sign_count,
            device_type=verification.credential_device_type.value,
            backed_up=verification.credential_backed_up,
            transports=response_transports(response),
        )
        self.credentials.create(credential)

        logger.info(
            "Passkey registered",
            extra={"email": session.subject_email, "user_id": session.subject_user_id},
        )
        return RegistrationResult(
            verified=True,
            user_id=session.subject_user_id,
            email=session.subject_email,
        )
