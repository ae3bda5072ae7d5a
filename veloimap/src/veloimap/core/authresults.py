"""Parse SPF, DKIM and DMARC verdicts from authentication headers.

What:
  Read ``Authentication-Results`` (or ``ARC-Authentication-Results``, or
  ``Received-SPF`` as an SPF-only fallback) and summarise it as per-mechanism
  verdicts plus an aggregate ``pass``/``warning``/``fail``/``unknown``.

Why:
  The UI flags spoofed senders. Receiving MTAs already did the cryptography;
  the client only has to read their conclusion consistently.

How:
  Folded header lines are unfolded, then ``mechanism=result (detail)`` pairs
  are matched case-insensitively. For DKIM any passing signature wins.

Interfaces:
  :class:`AuthVerdict`, :class:`AuthResult`,
  :func:`parse_authentication_results`, :func:`verdict_for_message`.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from ..models import Message


UNKNOWN = "unknown"
_FOLD = re.compile(r"\r?\n\s*")
_RECEIVED_SPF = re.compile(r"^(\w+)(?:\s*\(([^)]+)\))?", re.IGNORECASE)


@dataclass(frozen=True)
class AuthVerdict:
    result: str = UNKNOWN
    detail: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    spf: AuthVerdict
    dkim: AuthVerdict
    dmarc: AuthVerdict
    aggregate: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _mechanism_pattern(mechanism: str) -> "re.Pattern[str]":
    return re.compile(rf"{mechanism}\s*=\s*(\w+)(?:\s*\(([^)]+)\))?", re.IGNORECASE)


def _verdict(match: "re.Match[str]") -> AuthVerdict:
    detail = match.group(2)
    return AuthVerdict(match.group(1).lower(), detail.strip() if detail else None)


def _parse_mechanism(value: str, mechanism: str) -> AuthVerdict:
    match = _mechanism_pattern(mechanism).search(value)
    return _verdict(match) if match else AuthVerdict()


def _parse_dkim(value: str) -> AuthVerdict:
    verdicts = [_verdict(match) for match in _mechanism_pattern("dkim").finditer(value)]
    if not verdicts:
        return AuthVerdict()
    for verdict in verdicts:
        if verdict.result == "pass":
            return verdict
    return verdicts[0]


def aggregate(spf: AuthVerdict, dkim: AuthVerdict, dmarc: AuthVerdict) -> str:
    """Combine individual verdicts into one of four buckets."""

    if dmarc.result == "pass":
        return "pass"
    if dmarc.result == "fail":
        return "fail"
    failed = {"fail", "hardfail"}
    if spf.result in failed and dkim.result in failed:
        return "fail"
    if spf.result == UNKNOWN and dkim.result == UNKNOWN and dmarc.result == UNKNOWN:
        return UNKNOWN
    if spf.result == "pass" and dkim.result == "pass" and dmarc.result == UNKNOWN:
        return "pass"
    return "warning"


def _find(headers: Iterable[Tuple[str, str]], name: str) -> Optional[str]:
    for header_name, value in headers:
        if header_name.lower() == name:
            return value
    return None


def parse_authentication_results(headers: Iterable[Tuple[str, str]]) -> Optional[AuthResult]:
    """Summarise authentication headers; ``None`` when there are none.

    Args:
      headers: ``(name, value)`` pairs in message order.
    """

    headers = list(headers)
    results = _find(headers, "authentication-results")
    if results is None:
        results = _find(headers, "arc-authentication-results")
    received_spf = _find(headers, "received-spf")
    if results is None and received_spf is None:
        return None

    spf = dkim = dmarc = AuthVerdict()
    if results is not None:
        value = _FOLD.sub(" ", results)
        spf = _parse_mechanism(value, "spf")
        dkim = _parse_dkim(value)
        dmarc = _parse_mechanism(value, "dmarc")
    elif received_spf is not None:
        match = _RECEIVED_SPF.match(_FOLD.sub(" ", received_spf).strip())
        if match:
            spf = _verdict(match)
    return AuthResult(spf, dkim, dmarc, aggregate(spf, dkim, dmarc))


def verdict_for_message(message: Message) -> Optional[AuthResult]:
    """Apply :func:`parse_authentication_results` to a normalised message."""

    if not message.auth_results:
        return None
    return parse_authentication_results([("Authentication-Results", message.auth_results)])
