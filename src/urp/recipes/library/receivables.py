"""Receivables aging.

Invoices and payments are transactions whose lines name the customer
entity (``line_amount`` positive for both). Payments are applied to a
customer's invoices oldest first (FIFO); what remains open is aged by
days past due as of the report date::

    current   not yet due
    1-30      1 to 30 days past due
    31-60
    61-90
    over_90   more than 90 days past due

An invoice line's due date is ``metadata["due_date"]`` when present,
otherwise the invoice date plus the customer's ``payment_terms_days``
dynamic field (30 when absent). Customers over their ``credit_limit``
dynamic field raise an alert. A terms, limit or due-date value that
cannot be read falls back to the default and raises a WARNING alert
naming the customer and the field.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from urp.core.models import Entity
from urp.primitives.dynamic_join import JoinedRecord
from urp.primitives.transactions import FactLine, TransactionFacts, index_by_entity
from urp.presentation import (
    Alert,
    AlertSeverity,
    BreakdownRow,
    PresentationPayload,
    ValueFormat,
    breakdown,
    card,
    invalid_value_alert,
    money,
    numeric_field,
    with_shares,
)
from urp.recipes.context import RecipeEngine
from urp.recipes.models import ParamDef, ParamType, Recipe, RecipeStep

ZERO = Decimal("0")

BUCKETS = ("current", "1-30", "31-60", "61-90", "over_90")
DEFAULT_TERMS_DAYS = 30
MAX_TERMS_DAYS = 3650
HIGH_RISK_SHARE = Decimal("20")
ELEVATED_RISK_SHARE = Decimal("15")


def bucket_for(days_past_due: int) -> str:
    if days_past_due > 90:
        return "over_90"
    if days_past_due > 60:
        return "61-90"
    if days_past_due > 30:
        return "31-60"
    if days_past_due > 0:
        return "1-30"
    return "current"


def _due_date(line: FactLine, terms_days: int) -> datetime.date:
    """
    Raises:
        ValueError: If the line carries a ``due_date`` that is not a date.
    """
    due = line.metadata.get("due_date")
    if due is None:
        return line.date + datetime.timedelta(days=terms_days)
    if isinstance(due, datetime.date):
        return due
    if isinstance(due, str):
        return datetime.date.fromisoformat(due)
    raise ValueError(f"Expected ISO date, got {due!r}")


def _terms_days(joined: JoinedRecord | None, label: str, alerts: list[Alert]) -> int:
    fallback = f"using {DEFAULT_TERMS_DAYS} days"
    value = numeric_field(joined, "payment_terms_days", alerts, fallback)
    if joined is None or value is None:
        return DEFAULT_TERMS_DAYS
    if value != value.to_integral_value() or not 0 <= value <= MAX_TERMS_DAYS:
        raw = joined["payment_terms_days"]
        alerts.append(invalid_value_alert(joined.id, label, "payment_terms_days", raw, fallback))
        return DEFAULT_TERMS_DAYS
    return int(value)


def apply_payments_fifo(invoices: list[FactLine], paid: Decimal) -> tuple[list[tuple[FactLine, Decimal]], Decimal]:
    """
    Apply ``paid`` to ``invoices`` oldest first.

    Returns:
        (open invoice lines with their remaining amount, unapplied payment)
    """
    remaining = paid
    open_items: list[tuple[FactLine, Decimal]] = []
    for line in sorted(invoices, key=lambda i: (i.date, i.transaction_id, i.line_number)):
        applied = min(remaining, line.line_amount)
        remaining -= applied
        if line.line_amount - applied > ZERO:
            open_items.append((line, line.line_amount - applied))
    return open_items, remaining


def render_aging(previous: list[JoinedRecord], engine: RecipeEngine, params: Mapping[str, Any]) -> PresentationPayload:
    as_of: datetime.date = params["asOfDate"]
    customers: list[Entity] = engine.output("customers")
    invoices: TransactionFacts = engine.output("invoices")
    payments: TransactionFacts = engine.output("payments")

    names = {c.id: c.name for c in customers}
    terms = {r.id: r for r in previous}
    invoice_lines = index_by_entity(invoices.lines)
    paid_by_customer: dict[str, Decimal] = {}
    for line in payments.lines:
        paid_by_customer[line.entity_id] = paid_by_customer.get(line.entity_id, ZERO) + line.line_amount

    totals = {b: ZERO for b in BUCKETS}
    counts = {b: 0 for b in BUCKETS}
    customer_rows: list[BreakdownRow] = []
    alerts: list[Alert] = []

    for customer_id in [*names, *(c for c in invoice_lines if c not in names)]:
        joined = terms.get(customer_id)
        label = names.get(customer_id, customer_id)
        terms_days = _terms_days(joined, label, alerts)
        credit_limit = numeric_field(joined, "credit_limit", alerts, "no credit limit applied")
        open_items, unapplied = apply_payments_fifo(
            invoice_lines.get(customer_id, []), paid_by_customer.get(customer_id, ZERO)
        )

        if unapplied > ZERO:
            alerts.append(
                Alert(
                    severity=AlertSeverity.INFO,
                    title="Unapplied Payment",
                    message=f"{label} has {money(unapplied)} in payments not matched to invoices",
                    entity_id=customer_id,
                )
            )
        if not open_items:
            continue

        per_bucket = {b: ZERO for b in BUCKETS}
        for line, amount in open_items:
            try:
                due = _due_date(line, terms_days)
            except ValueError:
                due = line.date + datetime.timedelta(days=terms_days)
                alerts.append(
                    invalid_value_alert(
                        customer_id,
                        label,
                        f"due_date of {line.transaction_id}",
                        line.metadata.get("due_date"),
                        f"due {terms_days} days after the invoice date",
                    )
                )
            bucket = bucket_for((as_of - due).days)
            per_bucket[bucket] += amount
            totals[bucket] += amount
            counts[bucket] += 1
        outstanding = sum(per_bucket.values(), ZERO)

        if credit_limit is not None and outstanding > credit_limit:
            alerts.append(
                Alert(
                    severity=AlertSeverity.WARNING,
                    title="Credit Limit Exceeded",
                    message=f"{label} owes {money(outstanding)} against a limit of {money(credit_limit)}",
                    entity_id=customer_id,
                )
            )

        customer_rows.append(
            BreakdownRow(
                label=label,
                entity_id=customer_id,
                value=money(outstanding),
                extra={
                    **{b: money(v) for b, v in per_bucket.items()},
                    "credit_limit": credit_limit,
                },
            )
        )

    total_outstanding = sum(totals.values(), ZERO)
    bucket_rows = with_shares(
        [BreakdownRow(label=b, value=money(totals[b]), extra={"count": counts[b]}) for b in BUCKETS],
        total_outstanding,
    )
    shares = {r.label: r.share or ZERO for r in bucket_rows}
    if shares["over_90"] > HIGH_RISK_SHARE:
        alerts.insert(
            0,
            Alert(
                severity=AlertSeverity.CRITICAL,
                title="High-Risk Receivables",
                message=f"{shares['over_90']}% of receivables are more than 90 days past due",
            ),
        )
    if shares["61-90"] > ELEVATED_RISK_SHARE:
        alerts.append(
            Alert(
                severity=AlertSeverity.WARNING,
                title="Aging Receivables",
                message=f"{shares['61-90']}% of receivables are 61-90 days past due",
            )
        )

    customer_rows.sort(key=lambda r: (-r.value, r.label))
    return PresentationPayload(
        summary_cards=[
            card("Total Outstanding", total_outstanding),
            card("Overdue", total_outstanding - totals["current"]),
            card("Over 90 Days", totals["over_90"]),
            card("Customers With Balance", len(customer_rows), ValueFormat.NUMBER),
        ],
        breakdowns=[
            breakdown("Aging Buckets", bucket_rows, total_outstanding),
            breakdown("By Customer", customer_rows, total_outstanding),
        ],
        alerts=alerts,
        metadata={"as_of": as_of, "buckets": list(BUCKETS)},
    )


def receivables_aging_recipe(namespace: str) -> Recipe:
    window = {"start": None, "end": "{{asOfDate}}"}
    return Recipe(
        name="receivables_aging",
        identifier_code=f"{namespace}.REPORTING.AR.REPORT.AGING.v1",
        category="receivables",
        description="Open customer invoices by days past due, payments applied FIFO",
        parameters=[ParamDef("asOfDate", ParamType.DATE, "Aging date (inclusive)", required=True)],
        steps=[
            RecipeStep.call("resolve_entities", output_key="customers", entity_type="customer"),
            RecipeStep.call(
                "transaction_facts",
                output_key="invoices",
                transaction_type="invoice",
                group_by="entity",
                include_lines=True,
                date_range=window,
            ),
            RecipeStep.call(
                "transaction_facts",
                output_key="payments",
                transaction_type="payment",
                group_by="entity",
                include_lines=True,
                date_range=window,
            ),
            RecipeStep.call(
                "dynamic_join",
                output_key="terms",
                entities="{{customers}}",
                field_names=["credit_limit", "payment_terms_days"],
            ),
            RecipeStep.custom(render_aging),
        ],
        cache_ttl=300,
    )
