"""Diagnostics: data problems reported as values, not exceptions.

A cyclic relationship or a transaction line booked to an unknown entity
does not abort a report. The primitive repairs what it can, keeps going,
and records a ``Diagnostic`` the caller can surface as an alert.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DiagnosticCode(str, Enum):
    UNMATCHED_RELATIONSHIP = "UNMATCHED_RELATIONSHIP"
    MULTIPLE_PARENTS = "MULTIPLE_PARENTS"
    ORPHAN_PROMOTED = "ORPHAN_PROMOTED"
    ORPHAN_EXCLUDED = "ORPHAN_EXCLUDED"
    CYCLE_EDGE_DROPPED = "CYCLE_EDGE_DROPPED"
    DEPTH_TRUNCATED = "DEPTH_TRUNCATED"
    UNASSIGNED_LINES = "UNASSIGNED_LINES"


@dataclass(frozen=True)
class Diagnostic:
    """One data problem found while building a result.

    Attributes:
        code: What kind of problem
        entity_id: The entity the problem is attached to
        related_id: The other end of the offending edge, if any
        message: Human-readable description
    """

    code: DiagnosticCode
    entity_id: str
    message: str
    related_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code.value, "entity_id": self.entity_id, "message": self.message}
        if self.related_id is not None:
            result["related_id"] = self.related_id
        return result
