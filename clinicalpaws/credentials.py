"""Bearer credential accessors used by the backend client.

The client never caches a credential: :meth:`CredentialAccessor.get` is
consulted for every request so that revocation takes effect immediately.
"""

from __future__ import annotations

import os
from typing import Protocol

ACCESS_TOKEN_ENV = "CLINICALPAWS_ACCESS_TOKEN"


class CredentialAccessor(Protocol):
    """Source of the bearer token attached to backend requests."""

    def get(self) -> str | None:  # pragma: no cover - protocol
        """Return the current token or ``None`` when the user is logged out."""

    def clear(self) -> None:  # pragma: no cover - protocol
        """Forget the stored token."""


class StaticCredentialAccessor:
    """Hold a token in memory, e.g. one passed on the command line."""

    def __init__(self, token: str | None = None) -> None:
        self._token = _clean(token)

    def get(self) -> str | None:
        return self._token

    def clear(self) -> None:
        self._token = None


class EnvironmentCredentialAccessor:
    """Read the token from an environment variable on every call."""

    def __init__(self, variable: str = ACCESS_TOKEN_ENV) -> None:
        self._variable = variable

    def get(self) -> str | None:
        return _clean(os.environ.get(self._variable))

    def clear(self) -> None:
        os.environ.pop(self._variable, None)


def _clean(token: str | None) -> str | None:
    if token is None:
        return None
    text = token.strip()
    return text or None


__all__ = [
    "ACCESS_TOKEN_ENV",
    "CredentialAccessor",
    "EnvironmentCredentialAccessor",
    "StaticCredentialAccessor",
]
