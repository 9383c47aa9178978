"""Passkey ceremony schemas."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class PublicKeyCredentialPayload(BaseModel):
    """Browser ``PublicKeyCredential`` serialised with ``toJSON()``.

    Only the envelope is validated here; the authenticator data is checked
    during verification.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., min_length=1)
    raw_id: str = Field(..., alias="rawId", min_length=1)
    type: str = Field(default="public-key", pattern="^public-key$")
    response: dict[str, Any]
    authenticator_attachment: Optional[str] = Field(default=None, alias="authenticatorAttachment")
    client_extension_results: dict[str, Any] = Field(
        default_factory=dict, alias="clientExtensionResults"
    )

    def to_webauthn(self) -> dict[str, Any]:
        """Return the camelCase dict py_webauthn parses."""
        return self.model_dump(by_alias=True, exclude_none=True)


class RegistrationVerifyResponse(BaseModel):
    verified: bool
    user_id: str
    email: str


class AuthenticationVerifyResponse(BaseModel):
    """Outcome of a successful passkey sign-in."""

    verified: bool
    user_id: str
    email: str
    directory_uid: Optional[str] = None
    display_name: str


class CredentialStatusResponse(BaseModel):
    has_credential: bool
    email: str


class CredentialRevokeResponse(BaseModel):
    success: bool = True
    message: str
