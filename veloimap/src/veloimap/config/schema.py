"""Pydantic models describing an IMAP connection attempt."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import ConfigurationError


class SecurityMode(str, Enum):
    """Transport security negotiated before authentication."""

    TLS = "tls"
    STARTTLS = "starttls"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> "SecurityMode":
        """Return the mode for ``value`` or raise :class:`ConfigurationError`.

        What:
          Accept an enum member or its string value (case-insensitive).

        Why:
          The negotiator is the single place where an unknown mode becomes a
          fatal error, and the message must list the accepted values so the
          operator can fix the account settings.
        """

        if isinstance(value, cls):
            return value
        candidate = str(value).strip().lower()
        for mode in cls:
            if mode.value == candidate:
                return mode
        accepted = ", ".join(f'"{mode.value}"' for mode in cls)
        raise ConfigurationError(
            f"Unknown security mode: {value}. Use {accepted}.",
            value=str(value),
        )


class AuthMethod(str, Enum):
    """Authentication mechanism used after the transport is ready."""

    PASSWORD = "password"
    OAUTH2 = "oauth2"


SECURITY_ALIASES = {"ssl": SecurityMode.TLS.value}
"""Legacy spellings stored by the surrounding application."""


class ImapConfig(BaseModel):
    """Immutable connection parameters for one IMAP account.

    ``security`` is kept as a normalised string: only the negotiator decides
    whether it is acceptable, so a configuration carrying a typo still loads
    and fails with a precise message at connect time.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, use_enum_values=False)

    host: str = Field(min_length=1)
    port: int = Field(default=993, gt=0, le=65535)
    security: str = SecurityMode.TLS.value
    auth_method: AuthMethod = AuthMethod.PASSWORD
    username: str
    secret: str = Field(repr=False)
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("security", mode="before")
    @classmethod
    def _normalise_security(cls, value: Any) -> str:
        if isinstance(value, SecurityMode):
            return value.value
        candidate = str(value).strip().lower()
        return SECURITY_ALIASES.get(candidate, candidate)

    @field_validator("auth_method", mode="before")
    @classmethod
    def _normalise_auth_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def security_mode(self) -> SecurityMode:
        """Parsed :class:`SecurityMode`; raises :class:`ConfigurationError`."""

        return SecurityMode.parse(self.security)
