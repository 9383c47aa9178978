"""HTTP routers."""

from . import errors, metrics, passkeys

__all__ = ["errors", "metrics", "passkeys"]
