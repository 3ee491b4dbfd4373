"""Stock levels.

``stock_movement`` transactions carry signed quantities per product line
(receipts positive, issues negative). On-hand is the quantity sum up to
the report date. Value uses the product's ``unit_cost`` dynamic field,
falling back to the weighted average ``unit_amount`` of receipts. A
``unit_cost`` or ``reorder_level`` that is not a number is ignored with
a WARNING alert.
"""

from __future__ import annotations

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
    TrendPoint,
    ValueFormat,
    breakdown,
    card,
    money,
    numeric_field,
    with_shares,
)
from urp.recipes.context import RecipeEngine
from urp.recipes.models import ParamDef, ParamType, Recipe, RecipeStep

ZERO = Decimal("0")


def average_receipt_cost(lines: list[FactLine]) -> Decimal | None:
    received = [line for line in lines if line.quantity > ZERO]
    quantity = sum((line.quantity for line in received), ZERO)
    if quantity == ZERO:
        return None
    return sum((line.quantity * line.unit_amount for line in received), ZERO) / quantity


def render_stock(previous: list[JoinedRecord], engine: RecipeEngine, params: Mapping[str, Any]) -> PresentationPayload:
    products: list[Entity] = engine.output("products")
    movements: TransactionFacts = engine.output("movements")
    by_product = index_by_entity(movements.lines)
    known = {p.id for p in products}

    rows: list[BreakdownRow] = []
    value_rows: list[BreakdownRow] = []
    alerts: list[Alert] = []
    total_units = ZERO
    total_value = ZERO
    below_reorder = 0

    for record in previous:
        product = record.entity
        group = movements.group(product.id)
        on_hand = Decimal(group.aggregates.get("sum") or 0) if group else ZERO
        unit_cost = numeric_field(record, "unit_cost", alerts, "valued at average receipt cost")
        if unit_cost is None:
            unit_cost = average_receipt_cost(by_product.get(product.id, []))
        value = on_hand * unit_cost if unit_cost is not None else ZERO
        reorder_level = numeric_field(record, "reorder_level", alerts, "no reorder level applied")

        total_units += on_hand
        total_value += value

        if on_hand < ZERO:
            alerts.append(
                Alert(
                    severity=AlertSeverity.CRITICAL,
                    title="Negative Stock",
                    message=f"{product.name} is at {on_hand} units",
                    entity_id=product.id,
                )
            )
        elif reorder_level is not None and on_hand <= reorder_level:
            below_reorder += 1
            alerts.append(
                Alert(
                    severity=AlertSeverity.WARNING,
                    title="Reorder Needed",
                    message=f"{product.name} has {on_hand} units, reorder level is {reorder_level}",
                    entity_id=product.id,
                )
            )

        rows.append(
            BreakdownRow(
                label=product.name,
                code=product.code,
                entity_id=product.id,
                value=on_hand,
                extra={
                    "unit_cost": money(unit_cost) if unit_cost is not None else None,
                    "reorder_level": reorder_level,
                    "stock_value": money(value),
                },
            )
        )
        value_rows.append(BreakdownRow(label=product.name, code=product.code, entity_id=product.id, value=money(value)))

    for product_id in by_product:
        if product_id not in known:
            alerts.append(
                Alert(
                    severity=AlertSeverity.WARNING,
                    title="Unknown Product",
                    message=f"Stock movements reference {product_id!r}, which is not a known product",
                    entity_id=product_id,
                )
            )

    monthly: dict[str, Decimal] = {}
    for line in movements.lines:
        key = f"{line.date.year:04d}-{line.date.month:02d}"
        monthly[key] = monthly.get(key, ZERO) + line.quantity

    return PresentationPayload(
        summary_cards=[
            card("Products", len(products), ValueFormat.NUMBER),
            card("Units On Hand", total_units, ValueFormat.NUMBER),
            card("Stock Value", total_value),
            card("Below Reorder Level", below_reorder, ValueFormat.NUMBER),
        ],
        breakdowns=[
            breakdown("On Hand", rows),
            breakdown("Stock Value", with_shares(value_rows, money(total_value)), total_value),
        ],
        trend=[TrendPoint(period=k, value=v, label="net movement") for k, v in sorted(monthly.items())],
        alerts=alerts,
        metadata={"as_of": params.get("asOfDate")},
    )


def stock_levels_recipe(namespace: str) -> Recipe:
    return Recipe(
        name="stock_levels",
        identifier_code=f"{namespace}.REPORTING.INV.REPORT.STOCK_LEVELS.v1",
        category="inventory",
        description="On-hand quantity and value per product with reorder alerts",
        parameters=[ParamDef("asOfDate", ParamType.DATE, "Stock date (inclusive); all movements when omitted")],
        steps=[
            RecipeStep.call("resolve_entities", output_key="products", entity_type="product"),
            RecipeStep.call(
                "transaction_facts",
                output_key="movements",
                transaction_type="stock_movement",
                group_by="entity",
                measure="quantity",
                include_lines=True,
                date_range={"start": None, "end": "{{asOfDate}}"},
            ),
            RecipeStep.call(
                "dynamic_join",
                output_key="stock_fields",
                entities="{{products}}",
                field_names=["reorder_level", "unit_cost"],
            ),
            RecipeStep.custom(render_stock),
        ],
        cache_ttl=120,
    )
