"""
Tests for the built-in recipes (urp.recipes.library) against the acme
fixture.

Journal lines are debit-positive. For fiscal 2024 the ledger holds
capital of 10000, sales of 3000 (2000 collected), cost of sales of 1200
and rent of 800, plus one 2023 cash sale of 500.
"""

import datetime
from decimal import Decimal

import pytest

from urp.core.models import DynamicField, Entity, NumberValue, Relationship, TextValue, Transaction, TransactionLine
from urp.primitives.transactions import FactLine
from urp.recipes.library.accounts import (
    AccountClass,
    classify_account,
    natural_sign,
    parse_account_class,
    split_debit_credit,
)
from urp.recipes.library.inventory import average_receipt_cost
from urp.recipes.library.receivables import apply_payments_fifo, bucket_for


def num(value):
    """Report numbers arrive as exact decimal strings."""
    return Decimal(value) if isinstance(value, str) else value


def cards(data) -> dict:
    return {c["title"]: num(c["value"]) for c in data["summary_cards"]}


def section(data, title: str) -> dict:
    [found] = [b for b in data["breakdowns"] if b["title"] == title]
    return {r["label"]: num(r["value"]) for r in found["rows"]}


def trend(data) -> list[tuple[str, Decimal]]:
    return [(p["period"], num(p["value"])) for p in data["trend"]]


def alerts(data) -> list[tuple[str, str]]:
    return [(a["severity"], a["title"]) for a in data["alerts"]]


def invoice(txn_id: str, day: datetime.date, amount: str, **metadata) -> FactLine:
    return FactLine(txn_id, "invoice", day, "c1", Decimal(amount), line_number=1, metadata=metadata)


class TestAccountClassification:
    @pytest.mark.parametrize(
        "code, expected",
        [
            ("1110", AccountClass.ASSET),
            ("2100", AccountClass.LIABILITY),
            ("4100", AccountClass.REVENUE),
            ("7000", AccountClass.INDIRECT_EXPENSES),
            ("9100", AccountClass.STATISTICAL),
            ("", None),
        ],
    )
    def test_by_code(self, code, expected):
        assert classify_account(Entity("a", "acme", "account", "A", code)) is expected

    def test_field_overrides_code(self):
        field = DynamicField("a", "acme", "account_type", TextValue("Direct_Expenses"))
        entity = Entity("a", "acme", "account", "Rent", "7100", dynamic_fields=(field,))
        assert classify_account(entity) is AccountClass.DIRECT_EXPENSES

    def test_unparseable_field_falls_back_to_code(self):
        field = DynamicField("a", "acme", "account_type", TextValue("misc"))
        entity = Entity("a", "acme", "account", "Cash", "1110", dynamic_fields=(field,))
        assert classify_account(entity) is AccountClass.ASSET

    def test_aliases(self):
        assert parse_account_class("Liabilities") is AccountClass.LIABILITY
        assert parse_account_class("cogs") is AccountClass.COST_OF_SALES
        assert parse_account_class("widgets") is None

    def test_natural_sign(self):
        assert natural_sign(Entity("a", "acme", "account", "Cash", "1110")) == 1
        assert natural_sign(Entity("a", "acme", "account", "Sales", "4100")) == -1

    def test_split_debit_credit(self):
        assert split_debit_credit(Decimal("5")) == (Decimal("5"), Decimal("0"))
        assert split_debit_credit(Decimal("-5")) == (Decimal("0"), Decimal("5"))


class TestReceivableHelpers:
    @pytest.mark.parametrize(
        "days, bucket",
        [(-10, "current"), (0, "current"), (1, "1-30"), (30, "1-30"), (31, "31-60"), (61, "61-90"), (91, "over_90")],
    )
    def test_bucket_for(self, days, bucket):
        assert bucket_for(days) == bucket

    def test_fifo_pays_oldest_first(self):
        old = invoice("inv-1", datetime.date(2024, 1, 10), "1500")
        new = invoice("inv-2", datetime.date(2024, 3, 1), "700")
        open_items, unapplied = apply_payments_fifo([new, old], Decimal("1000"))
        assert open_items == [(old, Decimal("500")), (new, Decimal("700"))]
        assert unapplied == Decimal("0")

    def test_fifo_overpayment(self):
        only = invoice("inv-1", datetime.date(2024, 1, 10), "100")
        open_items, unapplied = apply_payments_fifo([only], Decimal("150"))
        assert open_items == []
        assert unapplied == Decimal("50")


class TestInventoryHelpers:
    def test_average_receipt_cost_ignores_issues(self):
        day = datetime.date(2024, 1, 1)
        lines = [
            FactLine("sm-1", "stock_movement", day, "p1", Decimal("40"), Decimal("10"), Decimal("4")),
            FactLine("sm-2", "stock_movement", day, "p1", Decimal("60"), Decimal("10"), Decimal("6")),
            FactLine("sm-3", "stock_movement", day, "p1", Decimal("-9"), Decimal("-3"), Decimal("3")),
        ]
        assert average_receipt_cost(lines) == Decimal("5")

    def test_average_receipt_cost_without_receipts(self):
        assert average_receipt_cost([]) is None


class TestChartOfAccounts:
    def test_roots_and_nesting(self, executor):
        data = executor.execute("chart_of_accounts", "acme").data
        assert [n["id"] for n in data] == ["a1000", "a2000", "a3000", "a4000", "a5000", "a7000"]
        assets = data[0]
        assert [c["id"] for c in assets["children"]] == ["a1100", "a1200"]
        assert assets["children"][0]["children"][0]["name"] == "Cash"
        assert set(assets) == {
            "id",
            "code",
            "name",
            "depth",
            "classification",
            "normal_balance",
            "status",
            "identifier_code",
            "children",
        }

    def test_classification_fields(self, executor):
        data = executor.execute("chart_of_accounts", "acme").data
        by_id = {n["id"]: n for n in data}
        assert by_id["a2000"]["classification"] == "liability"
        assert by_id["a2000"]["normal_balance"] == "credit"
        assert by_id["a7000"]["children"][0]["classification"] == "direct_expenses"
        assert by_id["a7000"]["children"][0]["normal_balance"] == "debit"

    def test_max_depth(self, executor):
        data = executor.execute("chart_of_accounts", "acme", {"maxDepth": 1}).data
        assets = data[0]
        assert {c["id"] for c in assets["children"]} == {"a1100", "a1110", "a1200"}
        assert all(c["depth"] == 1 and c["children"] == [] for c in assets["children"])

    def test_account_type_filter(self, executor):
        data = executor.execute("chart_of_accounts", "acme", {"accountTypes": "asset"}).data
        assert [n["id"] for n in data] == ["a1000"]

        def classes(nodes):
            for n in nodes:
                yield n["classification"]
                yield from classes(n["children"])

        assert set(classes(data)) == {"asset"}

        both = executor.execute("chart_of_accounts", "acme", {"accountTypes": "asset,liability"}).data
        assert [n["id"] for n in both] == ["a1000", "a2000"]
        assert set(classes(both)) == {"asset", "liability"}

    def test_inactive_accounts(self, executor, store):
        store.add_entity(Entity("a1300", "acme", "account", "Old Bank", "1300", status="inactive"))
        store.add_relationship(Relationship("a1000", "a1300", "acme", "PARENT_OF"))

        default = executor.execute("chart_of_accounts", "acme").data
        assert "a1300" not in [c["id"] for c in default[0]["children"]]

        included = executor.execute("chart_of_accounts", "acme", {"includeInactive": True}).data
        [old] = [c for c in included[0]["children"] if c["id"] == "a1300"]
        assert old["status"] == "inactive"


class TestTrialBalance:
    @pytest.fixture
    def data(self, executor):
        return executor.execute("trial_balance", "acme", {"fiscalYear": 2024}).data

    def test_cards(self, data):
        assert cards(data) == {
            "Total Debits": 13800,
            "Total Credits": 13800,
            "Difference": 0,
            "Accounts With Activity": 7,
        }

    def test_account_rows(self, data):
        rows = section(data, "Accounts")
        assert rows == {
            "Cash": 10800,
            "Accounts Receivable": 1000,
            "Accounts Payable": -800,
            "Share Capital": -10000,
            "Sales": -3000,
            "Cost of Sales": 1200,
            "Rent": 800,
        }
        [cash] = [r for r in data["breakdowns"][0]["rows"] if r["label"] == "Cash"]
        assert (num(cash["extra"]["debit"]), num(cash["extra"]["credit"])) == (10800, 0)
        assert cash["extra"]["classification"] == "asset"
        assert cash["depth"] == 2

    def test_include_zero(self, executor):
        data = executor.execute("trial_balance", "acme", {"fiscalYear": 2024, "includeZero": True}).data
        assert len(section(data, "Accounts")) == 13

    def test_by_classification(self, data):
        assert section(data, "By Classification") == {
            "asset": 11800,
            "liability": 800,
            "equity": 10000,
            "revenue": 3000,
            "cost_of_sales": 1200,
            "direct_expenses": 800,
        }

    def test_monthly_debits(self, data):
        assert trend(data) == [
            ("2024-01", 10000),
            ("2024-02", 4200),
            ("2024-03", 2800),
        ]

    def test_balanced_alert(self, data):
        first = data["alerts"][0]
        assert (first["severity"], first["title"]) == ("info", "Trial Balance")
        assert first["message"] == "Debits equal credits"

    def test_prior_year(self, executor):
        data = executor.execute("trial_balance", "acme", {"fiscalYear": 2023}).data
        assert cards(data)["Total Debits"] == 500
        assert data["metadata"] == {"fiscal_year": 2023, "transactions": 1}

    def test_out_of_balance(self, executor, store):
        store.add_transaction(
            Transaction(
                "je-bad",
                "acme",
                "journal_entry",
                datetime.date(2024, 4, 1),
                lines=(TransactionLine("a1110", Decimal("50"), line_number=1),),
            )
        )
        data = executor.execute("trial_balance", "acme", {"fiscalYear": 2024}).data
        assert cards(data)["Difference"] == 50
        assert data["alerts"][0]["severity"] == "critical"
        assert data["alerts"][0]["message"] == "Out of balance by 50.00"


class TestBalanceSheet:
    def test_year_end(self, executor):
        data = executor.execute("balance_sheet", "acme", {"asOfDate": "2024-12-31"}).data
        assert cards(data) == {
            "Total Assets": 12300,
            "Total Liabilities": 800,
            "Total Equity": 11500,
            "Current Earnings": 1500,
        }
        assert section(data, "Assets") == {
            "Assets": 12300,
            "Current Assets": 11300,
            "Cash": 11300,
            "Accounts Receivable": 1000,
        }
        assert section(data, "Equity") == {"Equity": 10000, "Share Capital": 10000, "Current Earnings": 1500}
        assert data["alerts"][0]["message"] == "Assets equal liabilities plus equity"
        assert data["metadata"] == {"as_of": "2024-12-31"}

    def test_asset_shares(self, executor):
        data = executor.execute("balance_sheet", "acme", {"asOfDate": "2024-12-31"}).data
        [assets] = [b for b in data["breakdowns"] if b["title"] == "Assets"]
        assert num(assets["rows"][0]["share"]) == 100
        assert num(assets["total"]) == 12300

    def test_prior_year_end(self, executor):
        data = executor.execute("balance_sheet", "acme", {"asOfDate": "2023-12-31"}).data
        assert cards(data)["Total Assets"] == 500
        assert cards(data)["Current Earnings"] == 500
        assert cards(data)["Total Liabilities"] == 0


class TestIncomeStatement:
    @pytest.fixture
    def data(self, executor):
        return executor.execute("income_statement", "acme", {"fiscalYear": 2024}).data

    def test_cards(self, data):
        assert cards(data) == {
            "Revenue": 3000,
            "Gross Profit": 1800,
            "Net Income": 1000,
            "Net Margin": Decimal("33.33"),
        }
        [margin] = [c for c in data["summary_cards"] if c["title"] == "Net Margin"]
        assert margin["format"] == "percent"

    def test_breakdowns(self, data):
        assert section(data, "Revenue") == {"Revenue": 3000, "Sales": 3000}
        assert section(data, "Expenses") == {"Cost of Sales": 1200, "Operating Expenses": 800, "Rent": 800}

    def test_monthly_net_income(self, data):
        assert trend(data) == [("2024-02", 1800), ("2024-03", -800)]

    def test_no_loss_alert(self, data):
        assert ("warning", "Net Loss") not in alerts(data)

    def test_prior_year(self, executor):
        data = executor.execute("income_statement", "acme", {"fiscalYear": 2023}).data
        assert cards(data)["Net Income"] == 500

    def test_net_loss(self, executor, store):
        store.add_transaction(
            Transaction(
                "je-rent",
                "acme",
                "journal_entry",
                datetime.date(2025, 1, 31),
                lines=(
                    TransactionLine("a7100", Decimal("300"), line_number=1),
                    TransactionLine("a1110", Decimal("-300"), line_number=2),
                ),
            )
        )
        data = executor.execute("income_statement", "acme", {"fiscalYear": 2025}).data
        assert cards(data)["Net Income"] == -300
        assert alerts(data)[0] == ("warning", "Net Loss")
        assert data["alerts"][0]["message"] == "Net loss of 300.00"

    def test_no_revenue_margin_is_zero(self, executor):
        data = executor.execute("income_statement", "acme", {"fiscalYear": 2030}).data
        assert cards(data)["Net Margin"] == 0
        assert data["trend"] == []


class TestReceivablesAging:
    @pytest.fixture
    def data(self, executor):
        return executor.execute("receivables_aging", "acme", {"asOfDate": "2024-04-15"}).data

    def test_buckets(self, data):
        assert section(data, "Aging Buckets") == {
            "current": 400,
            "1-30": 700,
            "31-60": 0,
            "61-90": 500,
            "over_90": 0,
        }

    def test_cards(self, data):
        assert cards(data) == {
            "Total Outstanding": 1600,
            "Overdue": 1200,
            "Over 90 Days": 0,
            "Customers With Balance": 2,
        }

    def test_by_customer(self, data):
        [by_customer] = [b for b in data["breakdowns"] if b["title"] == "By Customer"]
        assert [(r["label"], num(r["value"])) for r in by_customer["rows"]] == [("Globex", 1200), ("Initech", 400)]
        globex = by_customer["rows"][0]
        assert num(globex["extra"]["61-90"]) == 500
        assert num(globex["extra"]["credit_limit"]) == 1000

    def test_alerts(self, data):
        assert alerts(data) == [("warning", "Credit Limit Exceeded"), ("warning", "Aging Receivables")]
        assert data["alerts"][0]["entity_id"] == "c1"
        assert data["alerts"][1]["message"] == "31.25% of receivables are 61-90 days past due"

    def test_earlier_date_excludes_later_records(self, executor):
        data = executor.execute("receivables_aging", "acme", {"asOfDate": "2024-01-31"}).data
        assert section(data, "Aging Buckets")["current"] == 1500
        assert cards(data)["Total Outstanding"] == 1500
        assert alerts(data) == [("warning", "Credit Limit Exceeded")]

    def test_unapplied_payment(self, executor, store):
        store.add_transaction(
            Transaction(
                "pay-2",
                "acme",
                "payment",
                datetime.date(2024, 3, 25),
                lines=(TransactionLine("c2", Decimal("500"), line_number=1),),
            )
        )
        data = executor.execute("receivables_aging", "acme", {"asOfDate": "2024-04-15"}).data
        assert ("info", "Unapplied Payment") in alerts(data)
        assert cards(data)["Customers With Balance"] == 1

    def test_unreadable_customer_fields_fall_back(self, executor, store):
        store.set_dynamic_field(DynamicField("c1", "acme", "payment_terms_days", TextValue("net 30")))
        store.set_dynamic_field(DynamicField("c1", "acme", "credit_limit", TextValue("unlimited")))
        data = executor.execute("receivables_aging", "acme", {"asOfDate": "2024-04-15"}).data

        assert cards(data)["Total Outstanding"] == 1600
        assert section(data, "Aging Buckets")["61-90"] == 500
        invalid = [a for a in data["alerts"] if a["title"] == "Invalid Field Value"]
        assert [(a["severity"], a["entity_id"]) for a in invalid] == [("warning", "c1"), ("warning", "c1")]
        assert "payment_terms_days" in invalid[0]["message"] and "'net 30'" in invalid[0]["message"]
        assert "credit_limit" in invalid[1]["message"]
        assert ("warning", "Credit Limit Exceeded") not in alerts(data)

    def test_fractional_terms_fall_back(self, executor, store):
        store.set_dynamic_field(DynamicField("c1", "acme", "payment_terms_days", NumberValue(Decimal("30.5"))))
        data = executor.execute("receivables_aging", "acme", {"asOfDate": "2024-04-15"}).data
        assert ("warning", "Invalid Field Value") in alerts(data)
        assert section(data, "Aging Buckets")["61-90"] == 500

    def test_unreadable_due_date_uses_terms(self, executor, store):
        store.add_transaction(
            Transaction(
                "inv-4",
                "acme",
                "invoice",
                datetime.date(2024, 3, 25),
                lines=(TransactionLine("c2", Decimal("100"), line_number=1, metadata={"due_date": "soon"}),),
            )
        )
        data = executor.execute("receivables_aging", "acme", {"asOfDate": "2024-04-15"}).data

        assert section(data, "Aging Buckets")["current"] == 500
        [bad] = [a for a in data["alerts"] if a["title"] == "Invalid Field Value"]
        assert bad["entity_id"] == "c2"
        assert "inv-4" in bad["message"]


class TestStockLevels:
    def test_all_movements(self, executor):
        data = executor.execute("stock_levels", "acme").data
        assert cards(data) == {"Products": 2, "Units On Hand": 15, "Stock Value": 48, "Below Reorder Level": 1}
        assert section(data, "On Hand") == {"Widget": 8, "Gadget": 7}
        assert section(data, "Stock Value") == {"Widget": 20, "Gadget": 28}
        assert alerts(data) == [("warning", "Reorder Needed")]
        assert data["alerts"][0]["entity_id"] == "p1"

    def test_average_cost_used_without_unit_cost(self, executor):
        data = executor.execute("stock_levels", "acme").data
        [gadget] = [r for r in data["breakdowns"][0]["rows"] if r["label"] == "Gadget"]
        assert num(gadget["extra"]["unit_cost"]) == 4

    def test_as_of_date(self, executor):
        data = executor.execute("stock_levels", "acme", {"asOfDate": "2024-01-31"}).data
        assert cards(data)["Units On Hand"] == 30
        assert cards(data)["Stock Value"] == 90
        assert data["alerts"] == []

    def test_monthly_movement(self, executor):
        data = executor.execute("stock_levels", "acme").data
        assert trend(data) == [("2024-01", 30), ("2024-02", -15)]

    def test_unreadable_product_fields_are_ignored(self, executor, store):
        store.set_dynamic_field(DynamicField("p1", "acme", "unit_cost", TextValue("cheap")))
        store.set_dynamic_field(DynamicField("p1", "acme", "reorder_level", TextValue("ten")))
        data = executor.execute("stock_levels", "acme").data

        assert section(data, "Stock Value") == {"Widget": 20, "Gadget": 28}
        assert cards(data)["Below Reorder Level"] == 0
        assert alerts(data) == [("warning", "Invalid Field Value"), ("warning", "Invalid Field Value")]
        assert [a["entity_id"] for a in data["alerts"]] == ["p1", "p1"]
        assert "unit_cost" in data["alerts"][0]["message"]
        assert "reorder_level" in data["alerts"][1]["message"]
