"""Passkey (WebAuthn) registration and sign-in service."""
