"""Tests for statement rows and summary aggregates."""

from decimal import Decimal
from typing import Any

import pytest

from erp_exports.core.errors import FileGenerationError
from erp_exports.lib.exporter.statement import (
    StatementRow,
    build_rows,
    format_money,
    oldest_first,
    parse_amount,
    running_balances,
    summarize,
    to_money,
)


class TestAmounts:
    """Tests for amount parsing and display."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("10", Decimal("10.00")),
            (10.5, Decimal("10.50")),
            ("0.005", Decimal("0.01")),
            ("1,234.567", Decimal("1234.57")),
            (None, Decimal("0.00")),
            ("", Decimal("0.00")),
        ],
    )
    def test_valid(self, raw: object, expected: Decimal) -> None:
        assert to_money(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", True, "NaN", "Infinity"])
    def test_invalid(self, raw: object) -> None:
        with pytest.raises(FileGenerationError, match="Invalid amount"):
            to_money(raw)

    def test_format_money(self) -> None:
        assert format_money(Decimal("3")) == "3.00"
        assert format_money(Decimal("-2.345")) == "-2.35"

    def test_parse_amount_keeps_precision(self) -> None:
        assert parse_amount("99.995") == Decimal("99.995")
        assert parse_amount("1,000") == Decimal("1000")
        assert parse_amount(None) == Decimal(0)


class TestStatementRow:
    """Tests for StatementRow.from_record."""

    def test_from_record(self, transaction_records: list[dict[str, Any]]) -> None:
        row = StatementRow.from_record(transaction_records[0])
        assert row.date == "2024-03-03"
        assert row.account == "Main Current"
        assert row.amount == Decimal("1500.50")
        assert row.is_credit
        assert row.signed_amount == Decimal("1500.50")
        assert row.cell("amount") == "1500.50"
        assert row.cell("bill_no") == "B-42"

    def test_account_fallbacks(self) -> None:
        assert StatementRow.from_record({"account_name": "Ops", "amount": 1}).account == "Ops"
        assert StatementRow.from_record({"account": 12, "amount": 1}).account == "12"

    def test_time_falls_back_to_created_at(self) -> None:
        row = StatementRow.from_record({"created_at": "2024-05-06T01:02:03", "amount": 1})
        assert row.date == "2024-05-06"

    def test_none_fields_become_empty(self) -> None:
        row = StatementRow.from_record({"amount": 1, "bill_no": None})
        assert row.cell("bill_no") == ""
        assert row.cell("purpose") == ""

    def test_unknown_type_has_no_signed_amount(self) -> None:
        row = StatementRow.from_record({"amount": 5, "transaction_type": "Transfer"})
        assert row.signed_amount == Decimal(0)

    def test_record_must_be_mapping(self) -> None:
        with pytest.raises(FileGenerationError):
            StatementRow.from_record(["not", "a", "dict"])  # type: ignore[arg-type]


class TestSummary:
    """Tests for summarize."""

    def test_totals(self, transaction_records: list[dict[str, Any]]) -> None:
        summary = summarize(build_rows(transaction_records))
        assert summary.total_transactions == 3
        assert summary.total_credit == Decimal("1600.495")
        assert summary.total_debit == Decimal("200.00")
        assert summary.net_amount == Decimal("1400.495")

    def test_type_is_case_insensitive(self) -> None:
        rows = build_rows([{"transaction_type": "CREDIT", "amount": 3}, {"transaction_type": "debit", "amount": 1}])
        assert summarize(rows).net_amount == Decimal("2.00")

    def test_sub_cent_amounts_summed_exactly(self) -> None:
        rows = build_rows(
            [
                {"transaction_type": "Credit", "amount": "0.005"},
                {"transaction_type": "Credit", "amount": "0.005"},
            ]
        )
        summary = summarize(rows)
        assert summary.total_credit == Decimal("0.010")
        assert ("Total Credit", "0.01") in summary.as_pairs()
        assert [row.cell("amount") for row in rows] == ["0.01", "0.01"]

    def test_empty(self) -> None:
        summary = summarize([])
        assert summary.as_pairs() == [
            ("Total Transactions", "0"),
            ("Total Credit", "0.00"),
            ("Total Debit", "0.00"),
            ("Net Amount", "0.00"),
        ]


class TestOrdering:
    """Tests for oldest_first and running_balances."""

    def test_oldest_first(self, transaction_records: list[dict[str, Any]]) -> None:
        rows = oldest_first(build_rows(transaction_records))
        assert [r.utr_number for r in rows] == ["UTR0001", "UTR0002", "UTR0003"]

    def test_mixed_timezone_awareness(self) -> None:
        rows = build_rows(
            [
                {"time": "2024-01-02T00:00:00", "amount": 1, "utr_number": "naive"},
                {"time": "2024-01-01T00:00:00+05:30", "amount": 1, "utr_number": "aware"},
                {"time": "garbage", "amount": 1, "utr_number": "bad"},
            ]
        )
        assert [r.utr_number for r in oldest_first(rows)] == ["bad", "aware", "naive"]

    def test_running_balances(self, transaction_records: list[dict[str, Any]]) -> None:
        balances = [b for _, b in running_balances(oldest_first(build_rows(transaction_records)))]
        assert balances == [Decimal("-200"), Decimal("-100.005"), Decimal("1400.495")]
        assert [format_money(b) for b in balances] == ["-200.00", "-100.01", "1400.50"]
