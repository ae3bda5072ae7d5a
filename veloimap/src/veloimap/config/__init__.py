"""Configuration schema and loader for IMAP accounts.

What:
  Re-export the pydantic :class:`ImapConfig` model, its enums and the YAML
  loader.

Why:
  Callers build configurations either directly (desktop shell, tests) or from
  a file (CLI); both paths should import from one place.
"""

from .loader import load_imap_config, parse_imap_config
from .schema import AuthMethod, ImapConfig, SecurityMode

__all__ = [
    "AuthMethod",
    "ImapConfig",
    "SecurityMode",
    "load_imap_config",
    "parse_imap_config",
]
