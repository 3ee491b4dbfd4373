"""Presentation contract and formatter adapters."""

from urp.presentation.formatters import (
    breakdown,
    card,
    diagnostic_alerts,
    hierarchy_rows,
    invalid_value_alert,
    money,
    numeric_field,
    trend_from_facts,
    with_shares,
)
from urp.presentation.models import (
    Alert,
    AlertSeverity,
    Breakdown,
    BreakdownRow,
    PresentationPayload,
    SummaryCard,
    TrendPoint,
    ValueFormat,
)

__all__ = [
    "PresentationPayload",
    "SummaryCard",
    "Breakdown",
    "BreakdownRow",
    "TrendPoint",
    "Alert",
    "AlertSeverity",
    "ValueFormat",
    "card",
    "breakdown",
    "hierarchy_rows",
    "with_shares",
    "trend_from_facts",
    "diagnostic_alerts",
    "invalid_value_alert",
    "numeric_field",
    "money",
]
