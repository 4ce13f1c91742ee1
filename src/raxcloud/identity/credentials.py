"""Credentials presented to the identity service.

A credential is a username plus exactly one secret, tagged with its kind so
that the login body is built in a single place.
"""

import enum
from dataclasses import dataclass
from typing import Any

from ..errors import CredentialError


class CredentialKind(enum.Enum):
    """Which secret a credential carries."""

    PASSWORD = "password"
    API_KEY = "api_key"


@dataclass(frozen=True)
class Credential:
    """Username and secret used to obtain a token.

    Attributes:
        username: Account username.
        secret: Password or API key, depending on ``kind``.
        kind: Discriminates the secret.
    """

    username: str
    secret: str
    kind: CredentialKind

    def __repr__(self) -> str:
        return (
            f"Credential(username={self.username!r}, "
            f"secret='***', kind={self.kind.name})"
        )

    @classmethod
    def password(cls, username: str, password: str) -> "Credential":
        """Build a password credential."""
        return cls.from_secrets(username, password=password)

    @classmethod
    def api_key(cls, username: str, api_key: str) -> "Credential":
        """Build an API key credential."""
        return cls.from_secrets(username, api_key=api_key)

    @classmethod
    def from_secrets(
        cls,
        username: str,
        password: str | None = None,
        api_key: str | None = None,
    ) -> "Credential":
        """Build a credential from whichever secret is supplied.

        Args:
            username: Account username.
            password: Account password.
            api_key: Account API key.

        Returns:
            A credential of the matching kind.

        Raises:
            CredentialError: If the username is empty, or if not exactly one
                of password and API key is non-empty.
        """
        if not username:
            msg = "a username must be supplied"
            raise CredentialError(msg)
        if password and api_key:
            msg = "supply either a password or an apiKey, not both"
            raise CredentialError(msg)
        if api_key:
            return cls(username=username, secret=api_key, kind=CredentialKind.API_KEY)
        if password:
            return cls(username=username, secret=password, kind=CredentialKind.PASSWORD)
        msg = "either a password or an apiKey must be supplied"
        raise CredentialError(msg)

    def auth_body(self) -> dict[str, Any]:
        """Return the JSON body for ``POST /tokens``."""
        match self.kind:
            case CredentialKind.PASSWORD:
                credentials = {
                    "passwordCredentials": {
                        "username": self.username,
                        "password": self.secret,
                    },
                }
            case CredentialKind.API_KEY:
                credentials = {
                    "RAX-KSKEY:apiKeyCredentials": {
                        "username": self.username,
                        "apiKey": self.secret,
                    },
                }
        return {"auth": credentials}
