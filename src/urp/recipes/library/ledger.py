"""General-ledger recipes: chart of accounts, trial balance, balance sheet,
income statement.

All four read ``account`` entities linked by ``PARENT_OF`` edges and
``journal_entry`` transactions whose lines are signed debit-positive.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from urp.core.models import Entity
from urp.primitives.hierarchy import Hierarchy, HierarchyNode
from urp.primitives.rollup import Rollup
from urp.primitives.transactions import TransactionFacts
from urp.presentation import (
    Alert,
    AlertSeverity,
    BreakdownRow,
    PresentationPayload,
    TrendPoint,
    ValueFormat,
    breakdown,
    card,
    diagnostic_alerts,
    hierarchy_rows,
    money,
    with_shares,
)
from urp.recipes.context import RecipeEngine
from urp.recipes.library.accounts import (
    EXPENSE_CLASSES,
    PROFIT_AND_LOSS,
    AccountClass,
    classify_account,
    is_debit_normal,
    natural_sign,
    parse_account_class,
    split_debit_credit,
)
from urp.recipes.models import OutputSchema, ParamDef, ParamType, Recipe, RecipeStep

ZERO = Decimal("0")

ACCOUNT_ENTITY = "account"
ACCOUNT_RELATIONSHIP = "PARENT_OF"
JOURNAL_ENTRY = "journal_entry"
INACTIVE_STATUS = "inactive"

ACCOUNT_CLASS_CHOICES = tuple(c.value for c in AccountClass)


def _account_steps() -> list[RecipeStep]:
    return [
        RecipeStep.call(
            "resolve_entities",
            output_key="accounts",
            entity_type=ACCOUNT_ENTITY,
            include_dynamic_data=True,
        ),
        RecipeStep.call(
            "build_hierarchy",
            output_key="tree",
            entities="{{accounts}}",
            relationship_type=ACCOUNT_RELATIONSHIP,
        ),
    ]


def _class_totals(tree: Hierarchy, rollup: Rollup) -> dict[AccountClass, Decimal]:
    """Own (not rolled-up) balances summed per class, debit-positive."""
    totals: dict[AccountClass, Decimal] = {c: ZERO for c in AccountClass}
    for node in tree.walk():
        account_class = classify_account(node.entity)
        if account_class is not None:
            totals[account_class] += rollup[node.id].balance
    return totals


def _in_classes(*classes: AccountClass):
    wanted = set(classes)

    def include(entity: Entity) -> bool:
        return classify_account(entity) in wanted

    return include


def _balanced_alert(title: str, difference: Decimal) -> Alert:
    if difference == ZERO:
        return Alert(severity=AlertSeverity.INFO, title=title, message="Debits equal credits")
    return Alert(
        severity=AlertSeverity.CRITICAL,
        title=title,
        message=f"Out of balance by {money(difference)}",
    )


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================


def select_accounts(previous: list[Entity], engine: RecipeEngine, params: Mapping[str, Any]) -> list[Entity]:
    """Keep accounts of the requested classes; drop inactive ones unless asked."""
    wanted = {parse_account_class(t) for t in params.get("accountTypes") or []}
    selected = []
    for entity in previous:
        if entity.status == INACTIVE_STATUS and not params.get("includeInactive"):
            continue
        if wanted and classify_account(entity) not in wanted:
            continue
        selected.append(entity)
    return selected


def render_chart(previous: Hierarchy, engine: RecipeEngine, params: Mapping[str, Any]) -> list[dict[str, Any]]:
    def extra(node: HierarchyNode) -> dict[str, Any]:
        account_class = classify_account(node.entity)
        return {
            "classification": account_class.value if account_class else None,
            "normal_balance": "debit" if is_debit_normal(account_class) else "credit",
            "status": node.entity.status,
            "identifier_code": node.entity.identifier_code,
        }

    return previous.to_nested(extra)


def chart_of_accounts_recipe(namespace: str) -> Recipe:
    return Recipe(
        name="chart_of_accounts",
        identifier_code=f"{namespace}.REPORTING.GL.REPORT.CHART_OF_ACCOUNTS.v1",
        category="financial",
        description="Account hierarchy with classification and normal balance",
        parameters=[
            ParamDef(
                "accountTypes",
                ParamType.LIST,
                "Account classes to include, comma-separated",
                choices=ACCOUNT_CLASS_CHOICES,
            ),
            ParamDef("includeInactive", ParamType.BOOL, "Include inactive and deleted accounts", default=False),
            ParamDef("maxDepth", ParamType.INT, "Deepest level to show (0 = top level)"),
        ],
        steps=[
            RecipeStep.call(
                "resolve_entities",
                output_key="accounts",
                entity_type=ACCOUNT_ENTITY,
                include_dynamic_data=True,
                include_deleted="{{includeInactive}}",
            ),
            RecipeStep.custom(select_accounts, output_key="selected"),
            RecipeStep.call(
                "build_hierarchy",
                output_key="tree",
                entities="{{selected}}",
                relationship_type=ACCOUNT_RELATIONSHIP,
                max_depth="{{maxDepth}}",
            ),
            RecipeStep.custom(render_chart),
        ],
        cache_ttl=600,
        output_schema=OutputSchema.HIERARCHY,
    )


# =============================================================================
# TRIAL BALANCE
# =============================================================================


def render_trial_balance(previous: Rollup, engine: RecipeEngine, params: Mapping[str, Any]) -> PresentationPayload:
    tree: Hierarchy = engine.output("tree")
    facts: TransactionFacts = engine.output("facts")
    include_zero = bool(params.get("includeZero"))

    rows: list[BreakdownRow] = []
    total_debits = ZERO
    total_credits = ZERO
    for node in tree.walk():
        balance = previous[node.id]
        debit, credit = split_debit_credit(balance.balance)
        total_debits += debit
        total_credits += credit
        if balance.line_count == 0 and not include_zero:
            continue
        account_class = classify_account(node.entity)
        rows.append(
            BreakdownRow(
                label=node.entity.name,
                code=node.entity.code,
                entity_id=node.id,
                depth=node.depth,
                value=money(balance.balance),
                extra={
                    "debit": money(debit),
                    "credit": money(credit),
                    "classification": account_class.value if account_class else None,
                },
            )
        )

    by_class = [
        BreakdownRow(label=c.value, value=money(total * (1 if is_debit_normal(c) else -1)))
        for c, total in _class_totals(tree, previous).items()
        if total != ZERO
    ]

    monthly: dict[str, Decimal] = {}
    for line in facts.lines:
        if line.line_amount > 0:
            key = f"{line.date.year:04d}-{line.date.month:02d}"
            monthly[key] = monthly.get(key, ZERO) + line.line_amount

    difference = total_debits - total_credits
    active = sum(1 for b in previous.balances.values() if b.line_count)
    return PresentationPayload(
        summary_cards=[
            card("Total Debits", total_debits),
            card("Total Credits", total_credits),
            card("Difference", difference),
            card("Accounts With Activity", active, ValueFormat.NUMBER),
        ],
        breakdowns=[
            breakdown("Accounts", rows),
            breakdown("By Classification", by_class),
        ],
        trend=[TrendPoint(period=k, value=money(v), label="debits") for k, v in sorted(monthly.items())],
        alerts=[
            _balanced_alert("Trial Balance", difference),
            *diagnostic_alerts([*tree.diagnostics, *previous.diagnostics]),
        ],
        metadata={"fiscal_year": params["fiscalYear"], "transactions": facts.transaction_count},
    )


def trial_balance_recipe(namespace: str) -> Recipe:
    return Recipe(
        name="trial_balance",
        identifier_code=f"{namespace}.REPORTING.GL.REPORT.TRIAL_BALANCE.v1",
        category="financial",
        description="Debit and credit balances per account for a fiscal year",
        parameters=[
            ParamDef("fiscalYear", ParamType.INT, "Calendar fiscal year, e.g. 2024", required=True),
            ParamDef("includeZero", ParamType.BOOL, "Show accounts without postings", default=False),
        ],
        steps=[
            *_account_steps(),
            RecipeStep.call(
                "transaction_facts",
                output_key="facts",
                transaction_type=JOURNAL_ENTRY,
                group_by="month",
                aggregations=["sum", "count"],
                include_lines=True,
                date_range="{{fiscalYear}}",
            ),
            RecipeStep.call("rollup_balances", output_key="balances", hierarchy="{{tree}}", lines="{{facts}}"),
            RecipeStep.custom(render_trial_balance),
        ],
        cache_ttl=300,
    )


# =============================================================================
# BALANCE SHEET
# =============================================================================


def render_balance_sheet(previous: Rollup, engine: RecipeEngine, params: Mapping[str, Any]) -> PresentationPayload:
    tree: Hierarchy = engine.output("tree")
    totals = _class_totals(tree, previous)

    assets = totals[AccountClass.ASSET]
    liabilities = -totals[AccountClass.LIABILITY]
    equity = -totals[AccountClass.EQUITY]
    current_earnings = -sum((totals[c] for c in PROFIT_AND_LOSS), ZERO)
    total_equity = equity + current_earnings
    difference = assets - (liabilities + total_equity)

    def section(*classes: AccountClass) -> list[BreakdownRow]:
        return hierarchy_rows(tree, previous, include=_in_classes(*classes), include_zero=False, sign=natural_sign)

    equity_rows = section(AccountClass.EQUITY)
    equity_rows.append(BreakdownRow(label="Current Earnings", value=money(current_earnings)))

    alert = _balanced_alert("Balance Sheet", difference)
    if difference == ZERO:
        alert = alert.model_copy(update={"message": "Assets equal liabilities plus equity"})

    return PresentationPayload(
        summary_cards=[
            card("Total Assets", assets),
            card("Total Liabilities", liabilities),
            card("Total Equity", total_equity),
            card("Current Earnings", current_earnings),
        ],
        breakdowns=[
            breakdown("Assets", with_shares(section(AccountClass.ASSET), assets), assets),
            breakdown("Liabilities", section(AccountClass.LIABILITY), liabilities),
            breakdown("Equity", equity_rows, total_equity),
        ],
        alerts=[alert, *diagnostic_alerts([*tree.diagnostics, *previous.diagnostics])],
        metadata={"as_of": params["asOfDate"]},
    )


def balance_sheet_recipe(namespace: str) -> Recipe:
    return Recipe(
        name="balance_sheet",
        identifier_code=f"{namespace}.REPORTING.GL.REPORT.BALANCE_SHEET.v1",
        category="financial",
        description="Assets, liabilities and equity as of a date",
        parameters=[ParamDef("asOfDate", ParamType.DATE, "Report date (inclusive)", required=True)],
        steps=[
            *_account_steps(),
            RecipeStep.call(
                "transaction_facts",
                output_key="facts",
                transaction_type=JOURNAL_ENTRY,
                group_by="none",
                include_lines=True,
                date_range={"start": None, "end": "{{asOfDate}}"},
            ),
            RecipeStep.call("rollup_balances", output_key="balances", hierarchy="{{tree}}", lines="{{facts}}"),
            RecipeStep.custom(render_balance_sheet),
        ],
        cache_ttl=300,
    )


# =============================================================================
# INCOME STATEMENT
# =============================================================================


def render_income_statement(previous: Rollup, engine: RecipeEngine, params: Mapping[str, Any]) -> PresentationPayload:
    tree: Hierarchy = engine.output("tree")
    facts: TransactionFacts = engine.output("facts")
    totals = _class_totals(tree, previous)

    revenue = -totals[AccountClass.REVENUE]
    cost_of_sales = totals[AccountClass.COST_OF_SALES]
    gross_profit = revenue - cost_of_sales
    operating = totals[AccountClass.DIRECT_EXPENSES] + totals[AccountClass.INDIRECT_EXPENSES]
    taxes = totals[AccountClass.TAXES_EXTRAORDINARY]
    net_income = gross_profit - operating - taxes
    margin = (net_income / revenue * 100).quantize(Decimal("0.01")) if revenue else ZERO

    classes = {node.id: classify_account(node.entity) for node in tree.walk()}
    monthly: dict[str, Decimal] = {}
    for line in facts.lines:
        if classes.get(line.entity_id) in PROFIT_AND_LOSS:
            key = f"{line.date.year:04d}-{line.date.month:02d}"
            monthly[key] = monthly.get(key, ZERO) - line.line_amount

    expense_total = cost_of_sales + operating + taxes
    alerts = list(diagnostic_alerts([*tree.diagnostics, *previous.diagnostics]))
    if net_income < ZERO:
        alerts.insert(
            0,
            Alert(severity=AlertSeverity.WARNING, title="Net Loss", message=f"Net loss of {money(-net_income)}"),
        )

    return PresentationPayload(
        summary_cards=[
            card("Revenue", revenue),
            card("Gross Profit", gross_profit),
            card("Net Income", net_income),
            card("Net Margin", margin, ValueFormat.PERCENT),
        ],
        breakdowns=[
            breakdown(
                "Revenue",
                hierarchy_rows(
                    tree, previous, include=_in_classes(AccountClass.REVENUE), include_zero=False, sign=natural_sign
                ),
                revenue,
            ),
            breakdown(
                "Expenses",
                with_shares(
                    hierarchy_rows(
                        tree, previous, include=_in_classes(*EXPENSE_CLASSES), include_zero=False, sign=natural_sign
                    ),
                    expense_total,
                ),
                expense_total,
            ),
        ],
        trend=[TrendPoint(period=k, value=money(v), label="net income") for k, v in sorted(monthly.items())],
        alerts=alerts,
        metadata={"fiscal_year": params["fiscalYear"]},
    )


def income_statement_recipe(namespace: str) -> Recipe:
    return Recipe(
        name="income_statement",
        identifier_code=f"{namespace}.REPORTING.GL.REPORT.INCOME_STATEMENT.v1",
        category="financial",
        description="Revenue, expenses and net income for a fiscal year",
        parameters=[ParamDef("fiscalYear", ParamType.INT, "Calendar fiscal year, e.g. 2024", required=True)],
        steps=[
            *_account_steps(),
            RecipeStep.call(
                "transaction_facts",
                output_key="facts",
                transaction_type=JOURNAL_ENTRY,
                group_by="month",
                include_lines=True,
                date_range="{{fiscalYear}}",
            ),
            RecipeStep.call("rollup_balances", output_key="balances", hierarchy="{{tree}}", lines="{{facts}}"),
            RecipeStep.custom(render_income_statement),
        ],
        cache_ttl=300,
    )
