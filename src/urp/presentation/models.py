"""Presentation contract.

The shape every ``presentation`` recipe returns. UI layers render it;
the engine never renders anything itself.

    PresentationPayload
    ├── summary_cards[]   headline numbers
    ├── breakdowns[]      titled tables of rows (optionally indented)
    ├── trend[]           ordered (period, value) points
    ├── alerts[]          severity + message, optionally tied to an entity
    └── metadata{}        recipe-specific extras (as_of, fiscal_year...)
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ValueFormat(str, Enum):
    CURRENCY = "currency"
    NUMBER = "number"
    PERCENT = "percent"
    TEXT = "text"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class SummaryCard(BaseModel):
    title: str
    value: Decimal | int | str
    format: ValueFormat = ValueFormat.CURRENCY
    subtitle: str | None = None


class BreakdownRow(BaseModel):
    label: str
    value: Decimal
    code: str | None = None
    entity_id: str | None = None
    depth: int = 0
    share: Decimal | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class Breakdown(BaseModel):
    title: str
    rows: list[BreakdownRow] = Field(default_factory=list)
    total: Decimal | None = None

    def row(self, label: str) -> BreakdownRow | None:
        for r in self.rows:
            if r.label == label:
                return r
        return None


class TrendPoint(BaseModel):
    period: str
    value: Decimal
    label: str | None = None


class Alert(BaseModel):
    severity: AlertSeverity
    title: str
    message: str
    entity_id: str | None = None


class PresentationPayload(BaseModel):
    summary_cards: list[SummaryCard] = Field(default_factory=list)
    breakdowns: list[Breakdown] = Field(default_factory=list)
    trend: list[TrendPoint] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def card(self, title: str) -> SummaryCard | None:
        for c in self.summary_cards:
            if c.title == title:
                return c
        return None

    def breakdown(self, title: str) -> Breakdown | None:
        for b in self.breakdowns:
            if b.title == title:
                return b
        return None
