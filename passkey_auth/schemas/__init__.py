"""Pydantic request and response schemas."""

from .passkey import (
    AuthenticationVerifyResponse,
    CredentialRevokeResponse,
    CredentialStatusResponse,
    PublicKeyCredentialPayload,
    RegistrationVerifyResponse,
)

__all__ = [
    "AuthenticationVerifyResponse",
    "CredentialRevokeResponse",
    "CredentialStatusResponse",
    "PublicKeyCredentialPayload",
    "RegistrationVerifyResponse",
]
