"""Passkey ceremony API endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from passkey_auth.core import settings
from passkey_auth.core.audit import (
    AuditAction,
    AuditOutcome,
    audit_log,
    create_audit_context_from_request,
)
from passkey_auth.dependencies import (
    get_account_service,
    get_authentication_service,
    get_bearer_token,
    get_registration_service,
)
from passkey_auth.domain.exceptions import DomainError, RepositoryUnavailableError
from passkey_auth.schemas.passkey import (
    AuthenticationVerifyResponse,
    CredentialRevokeResponse,
    CredentialStatusResponse,
    PublicKeyCredentialPayload,
    RegistrationVerifyResponse,
)
from passkey_auth.services import (
    PasskeyAccountService,
    PasskeyAuthenticationService,
    PasskeyRegistrationService,
)

router = APIRouter(prefix="/passkeys", tags=["passkeys"])

# Rate limiter for ceremony init endpoints - disabled during testing
limiter = Limiter(key_func=get_remote_address, enabled=not settings.testing)


def _set_session_cookie(response: Response, name: str, token: str) -> None:
    response.set_cookie(
        key=name,
        value=token,
        max_age=settings.challenge_ttl_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )


def _clear_session_cookie(response: Response, name: str) -> None:
    response.delete_cookie(
        key=name,
        httponly=True,
        secure=settings.is_production,
        samesite="none" if settings.is_production else "lax",
    )


def _audit_failure(request: Request, action: AuditAction, exc: DomainError, email: str | None = None) -> None:
    outcome = AuditOutcome.ERROR if isinstance(exc, RepositoryUnavailableError) else AuditOutcome.FAILURE
    audit_log(
        action,
        outcome,
        context=create_audit_context_from_request(request),
        email=email,
        error_code=exc.code,
        error_message=exc.message,
    )


# -----------------------------------------------------------------------------
# Registration


@router.get("/init-register")
@limiter.limit(settings.rate_limit_init)
def init_register(
    request: Request,
    response: Response,
    email: str = Query(..., min_length=3, max_length=320),
    service: PasskeyRegistrationService = Depends(get_registration_service),
) -> dict[str, Any]:
    """Issue credential creation options for an existing directory identity.

    The challenge session token travels back in an httpOnly cookie.
    """
    try:
        start = service.init_registration(email)
    except DomainError as exc:
        _audit_failure(request, AuditAction.REGISTRATION_OPTIONS, exc, email=email)
        raise

    _set_session_cookie(response, settings.registration_cookie_name, start.session_token)
    audit_log(
        AuditAction.REGISTRATION_OPTIONS,
        AuditOutcome.SUCCESS,
        context=create_audit_context_from_request(request),
        email=email,
    )
    return start.options


@router.post("/verify-register", response_model=RegistrationVerifyResponse)
def verify_register(
    request: Request,
    response: Response,
    payload: PublicKeyCredentialPayload,
    service: PasskeyRegistrationService = Depends(get_registration_service),
) -> RegistrationVerifyResponse:
    """Verify the attestation and store the new passkey."""
    session_token = request.cookies.get(settings.registration_cookie_name)
    try:
        result = service.verify_registration(payload.to_webauthn(), session_token)
    except DomainError as exc:
        _audit_failure(request, AuditAction.REGISTRATION_VERIFY, exc)
        raise

    _clear_session_cookie(response, settings.registration_cookie_name)
    audit_log(
        AuditAction.REGISTRATION_VERIFY,
        AuditOutcome.SUCCESS,
        context=create_audit_context_from_request(request),
        user_id=result.user_id,
        email=result.email,
    )
    return RegistrationVerifyResponse(
        verified=result.verified, user_id=result.user_id, email=result.email
    )


# -----------------------------------------------------------------------------
# Authentication


@router.get("/init-auth")
@limiter.limit(settings.rate_limit_init)
def init_auth(
    request: Request,
    response: Response,
    email: str = Query(..., min_length=3, max_length=320),
    service: PasskeyAuthenticationService = Depends(get_authentication_service),
) -> dict[str, Any]:
    """Issue assertion options restricted to the identity's single credential."""
    try:
        start = service.init_authentication(email)
    except DomainError as exc:
        _audit_failure(request, AuditAction.AUTHENTICATION_OPTIONS, exc, email=email)
        raise

    _set_session_cookie(response, settings.authentication_cookie_name, start.session_token)
    audit_log(
        AuditAction.AUTHENTICATION_OPTIONS,
        AuditOutcome.SUCCESS,
        context=create_audit_context_from_request(request),
        email=email,
    )
    return start.options


@router.post("/verify-auth", response_model=AuthenticationVerifyResponse)
def verify_auth(
    request: Request,
    response: Response,
    payload: PublicKeyCredentialPayload,
    service: PasskeyAuthenticationService = Depends(get_authentication_service),
) -> AuthenticationVerifyResponse:
    session_token = request.cookies.get(settings.authentication_cookie_name)
    try:
        result = service.verify_authentication(payload.to_webauthn(), session_token)
    except DomainError as exc:
        _audit_failure(request, AuditAction.AUTHENTICATION_VERIFY, exc)
        raise

    _clear_session_cookie(response, settings.authentication_cookie_name)
    audit_log(
        AuditAction.AUTHENTICATION_VERIFY,
        AuditOutcome.SUCCESS,
        context=create_audit_context_from_request(request),
        user_id=result.user_id,
        email=result.email,
    )
    return AuthenticationVerifyResponse(
        verified=result.verified,
        user_id=result.user_id,
        email=result.email,
        directory_uid=result.directory_uid,
        display_name=result.display_name,
    )


# -----------------------------------------------------------------------------
# Credential management (directory bearer token)


@router.get("/status", response_model=CredentialStatusResponse)
def credential_status(
    request: Request,
    token: str = Depends(get_bearer_token),
    service: PasskeyAccountService = Depends(get_account_service),
) -> CredentialStatusResponse:
    """Report whether the signed-in identity has a passkey."""
    try:
        status = service.status(token)
    except DomainError as exc:
        _audit_failure(request, AuditAction.CREDENTIAL_STATUS, exc)
        raise
    return CredentialStatusResponse(has_credential=status.has_credential, email=status.email)


@router.delete("/credentials", response_model=CredentialRevokeResponse)
def revoke_credential(
    request: Request,
    token: str = Depends(get_bearer_token),
    service: PasskeyAccountService = Depends(get_account_service),
) -> CredentialRevokeResponse:
    """Delete the signed-in identity's passkey so it can enrol again."""
    try:
        email = service.revoke(token)
    except DomainError as exc:
        _audit_failure(request, AuditAction.CREDENTIAL_REVOKE, exc)
        raise

    audit_log(
        AuditAction.CREDENTIAL_REVOKE,
        AuditOutcome.SUCCESS,
        context=create_audit_context_from_request(request),
        email=email,
    )
    return CredentialRevokeResponse(success=True, message="Biometric credentials removed")
