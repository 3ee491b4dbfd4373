"""
Identifier codes: validation and pattern matching.

Every record and every recipe carries a versioned, namespaced code::

    NAMESPACE.MODULE(.SEGMENT){3-8}.v<N>
    e.g.  ACME.FINANCE.GL.REPORT.TRIAL_BALANCE.v1

    MODULE   : 3-15 chars of [A-Z0-9]
    SEGMENT  : 2-30 chars of [A-Z0-9_]
    version  : lower-case ``v`` followed by digits

The taxonomy registry that decides which codes *exist* lives outside the
engine. ``IdentifierValidator`` is the seam; ``PatternIdentifierValidator``
is the default implementation, checking well-formedness only.

Patterns used by recipes to select records are case-sensitive globs
(``*``, ``?``, ``[...]``), e.g. ``*.GL.ACCOUNT.*``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Protocol

IDENTIFIER_RE = re.compile(
    r"^(?P<namespace>[A-Z][A-Z0-9]*)"
    r"\.(?P<module>[A-Z0-9]{3,15})"
    r"(?P<segments>(?:\.[A-Z0-9_]{2,30}){3,8})"
    r"\.v(?P<version>[0-9]+)$"
)

MATCH_ALL = "*"


@dataclass(frozen=True)
class IdentifierCheck:
    """Outcome of validating one identifier code."""

    valid: bool
    code: str
    namespace: str | None = None
    segments: tuple[str, ...] = field(default_factory=tuple)
    version: int | None = None
    reason: str | None = None


class IdentifierValidator(Protocol):
    """Validates identifier codes. Implemented by the external taxonomy registry."""

    def validate(self, code: str) -> IdentifierCheck: ...


class PatternIdentifierValidator:
    """
    Structural validator for identifier codes.

    Args:
        namespace: If given, only codes in this namespace are valid.
    """

    def __init__(self, namespace: str | None = None):
        self.namespace = namespace

    def validate(self, code: str) -> IdentifierCheck:
        match = IDENTIFIER_RE.match(code or "")
        if match is None:
            return IdentifierCheck(valid=False, code=code, reason="does not match NAMESPACE.MODULE.SEG.SEG.SEG.vN")

        namespace = match.group("namespace")
        if self.namespace is not None and namespace != self.namespace:
            return IdentifierCheck(
                valid=False,
                code=code,
                namespace=namespace,
                reason=f"namespace {namespace!r} is not {self.namespace!r}",
            )

        segments = (match.group("module"), *match.group("segments").lstrip(".").split("."))
        return IdentifierCheck(
            valid=True,
            code=code,
            namespace=namespace,
            segments=tuple(segments),
            version=int(match.group("version")),
        )


def matches_identifier(code: str, pattern: str | None) -> bool:
    """Case-sensitive glob match. ``None`` and ``"*"`` match everything."""
    if pattern is None or pattern == MATCH_ALL:
        return True
    return fnmatchcase(code or "", pattern)
