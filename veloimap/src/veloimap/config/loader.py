"""Load :class:`~veloimap.config.schema.ImapConfig` documents from YAML.

What:
  Locate an account file, parse it with PyYAML, merge the secret from the
  environment when the file omits it, and validate the result.

Why:
  Secret storage and account management live outside this package, but the
  CLI and integration scripts still need a predictable way to build a
  configuration. Every failure is reported as a
  :class:`~veloimap.errors.ConfigurationError` carrying the offending path.

How:
  Resolve candidate paths (explicit argument, ``VELOIMAP_CONFIG_PATH``,
  ``./imap.yaml``), read the first existing file, accept either a top-level
  mapping or one nested under ``imap:`` and validate via
  :meth:`ImapConfig.model_validate`.

Interfaces:
  :func:`load_imap_config`, :func:`parse_imap_config`.

Invariants:
  - The secret is never included in error messages.
  - Validation is strict: unknown keys are rejected.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError as _PydanticValidationError

from ..errors import ConfigurationError
from .schema import ImapConfig


CONFIG_ENV = "VELOIMAP_CONFIG_PATH"
SECRET_ENV = "VELOIMAP_SECRET"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (Path("imap.yaml"),)


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration file locations in priority order."""

    seen: set[Path] = set()
    candidates = []
    if path is not None:
        candidates.append(path)
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(_DEFAULT_LOCATIONS)
    for candidate in candidates:
        candidate = candidate.expanduser()
        if candidate not in seen:
            seen.add(candidate)
            yield candidate


def _parse_payload(text: str, source: Path) -> Dict[str, Any]:
    """Decode YAML ``text`` into the account mapping.

    Raises:
      ConfigurationError: When the YAML is malformed or not a mapping.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {source}: {exc}", path=str(source)) from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(
            f"{source} must contain a mapping at the top-level", path=str(source)
        )
    nested = payload.get("imap")
    if isinstance(nested, dict):
        payload = nested
    return dict(payload)


def parse_imap_config(
    payload: Mapping[str, Any],
    *,
    source: str = "<mapping>",
    environ: Optional[Mapping[str, str]] = None,
) -> ImapConfig:
    """Validate ``payload`` into an :class:`ImapConfig`.

    What:
      Fill ``secret`` from ``VELOIMAP_SECRET`` when the mapping lacks it, then
      run strict pydantic validation.

    Why:
      Operators keep passwords and tokens out of files handed around for
      debugging; the environment is the usual escape hatch.

    Args:
      payload: Raw account mapping.
      source: Label used in error messages.
      environ: Environment override, defaults to :data:`os.environ`.

    Returns:
      The validated configuration.

    Raises:
      ConfigurationError: When validation fails.
    """

    env = os.environ if environ is None else environ
    data = dict(payload)
    if not data.get("secret") and env.get(SECRET_ENV):
        data["secret"] = env[SECRET_ENV]
    try:
        return ImapConfig.model_validate(data)
    except _PydanticValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
        raise ConfigurationError(
            f"Invalid IMAP configuration in {source}: {fields}", path=source
        ) from exc


def load_imap_config(path: Optional[Path | str] = None) -> ImapConfig:
    """Locate, parse and validate an IMAP account file.

    Args:
      path: Optional explicit location; otherwise ``VELOIMAP_CONFIG_PATH`` and
        ``./imap.yaml`` are tried in that order.

    Returns:
      The validated :class:`ImapConfig`.

    Raises:
      ConfigurationError: If no file exists or its content is invalid.
    """

    requested = Path(path) if path is not None else None
    searched: list[str] = []
    for candidate in _candidate_paths(requested):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        try:
            text = candidate.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"Unable to read configuration file {candidate}: {exc}", path=str(candidate)
            ) from exc
        return parse_imap_config(_parse_payload(text, candidate), source=str(candidate))
    raise ConfigurationError(
        f"Unable to locate IMAP configuration (searched: {', '.join(searched) or '<none>'})"
    )
