"""Transaction statement rows and summary aggregates.

Normalizes raw transaction dicts from the list endpoint into statement
rows and computes the credit/debit/net summary over exactly those rows.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from erp_exports.core.errors import FileGenerationError

CENTS = Decimal("0.01")
CREDIT = "credit"
DEBIT = "debit"

# Header label -> row attribute
COLUMNS: list[tuple[str, str]] = [
    ("Date", "date"),
    ("Account", "account"),
    ("Type", "transaction_type"),
    ("Amount", "amount"),
    ("From Party", "from_party"),
    ("To Party", "to_party"),
    ("Purpose", "purpose"),
    ("Bill No", "bill_no"),
    ("UTR Number", "utr_number"),
]


# Characters that trigger formula execution in spreadsheet applications
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")

# Columns holding free text typed by users
TEXT_COLUMNS = frozenset({"account", "from_party", "to_party", "purpose", "bill_no", "utr_number"})


def sanitize_cell(value: str) -> str:
    """Prefix values starting with formula-triggering characters with a single quote.

    Args:
        value: The cell value to sanitize.

    Returns:
        The sanitized value.
    """
    if value and value[0] in FORMULA_PREFIXES:
        return f"'{value}"
    return value


def parse_amount(value: object) -> Decimal:
    """Convert a numeric or string amount to an exact Decimal.

    Missing values count as zero.  Thousands separators are accepted.

    Raises:
        FileGenerationError: If the value is not numeric.
    """
    if isinstance(value, bool):
        msg = f"Invalid amount: {value!r}"
        raise FileGenerationError(msg)
    try:
        amount = Decimal(str(value).replace(",", "")) if value not in (None, "") else Decimal(0)
    except InvalidOperation as exc:
        msg = f"Invalid amount: {value!r}"
        raise FileGenerationError(msg) from exc
    if not amount.is_finite():
        msg = f"Invalid amount: {value!r}"
        raise FileGenerationError(msg)
    return amount


def to_money(value: object) -> Decimal:
    """Convert an amount to a 2-decimal Decimal for display.

    Raises:
        FileGenerationError: If the value is not numeric.
    """
    return parse_amount(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal) -> str:
    """Format a Decimal amount with exactly two decimal places."""
    return f"{amount.quantize(CENTS, rounding=ROUND_HALF_UP):.2f}"


def _text(value: object) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class StatementRow:
    """One transaction, normalized for export.

    ``amount`` keeps the source precision; it is rounded to cents only
    when displayed, so totals are exact sums of the rows.
    """

    time: str
    account: str
    transaction_type: str
    amount: Decimal
    from_party: str
    to_party: str
    purpose: str
    bill_no: str
    utr_number: str

    @property
    def date(self) -> str:
        return self.time[:10]

    @property
    def is_credit(self) -> bool:
        return self.transaction_type.lower() == CREDIT

    @property
    def is_debit(self) -> bool:
        return self.transaction_type.lower() == DEBIT

    @property
    def signed_amount(self) -> Decimal:
        if self.is_credit:
            return self.amount
        if self.is_debit:
            return -self.amount
        return Decimal(0)

    def cell(self, attribute: str) -> str:
        """String value of a column, with money formatted to 2 decimals."""
        if attribute == "amount":
            return format_money(self.amount)
        return _text(getattr(self, attribute))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "StatementRow":
        """Build a row from a list-endpoint transaction dict.

        Raises:
            FileGenerationError: If the record is malformed.
        """
        if not isinstance(record, Mapping):
            msg = f"Transaction record must be an object, got {type(record).__name__}"
            raise FileGenerationError(msg)
        account = record.get("account_nickname") or record.get("account_name") or record.get("account")
        return cls(
            time=_text(record.get("time") or record.get("created_at")),
            account=_text(account),
            transaction_type=_text(record.get("transaction_type")),
            amount=parse_amount(record.get("amount")),
            from_party=_text(record.get("from_party")),
            to_party=_text(record.get("to_party")),
            purpose=_text(record.get("purpose")),
            bill_no=_text(record.get("bill_no")),
            utr_number=_text(record.get("utr_number")),
        )


@dataclass(frozen=True)
class StatementSummary:
    """Aggregates over an exact set of statement rows, unrounded."""

    total_transactions: int
    total_credit: Decimal
    total_debit: Decimal

    @property
    def net_amount(self) -> Decimal:
        return self.total_credit - self.total_debit

    def as_pairs(self) -> list[tuple[str, str]]:
        """Label/value pairs in display order."""
        return [
            ("Total Transactions", str(self.total_transactions)),
            ("Total Credit", format_money(self.total_credit)),
            ("Total Debit", format_money(self.total_debit)),
            ("Net Amount", format_money(self.net_amount)),
        ]


def summarize(rows: Iterable[StatementRow]) -> StatementSummary:
    """Compute the statement summary over exactly ``rows``."""
    count = 0
    credit = Decimal(0)
    debit = Decimal(0)
    for row in rows:
        count += 1
        if row.is_credit:
            credit += row.amount
        elif row.is_debit:
            debit += row.amount
    return StatementSummary(total_transactions=count, total_credit=credit, total_debit=debit)


def build_rows(records: Iterable[Mapping[str, Any]]) -> list[StatementRow]:
    """Normalize raw records into statement rows, keeping their order."""
    return [StatementRow.from_record(record) for record in records]


def _sort_key(row: StatementRow) -> datetime:
    try:
        parsed = datetime.fromisoformat(row.time.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def oldest_first(rows: Iterable[StatementRow]) -> list[StatementRow]:
    """Rows sorted by transaction time, oldest first (stable for unparseable times)."""
    return sorted(rows, key=_sort_key)


def running_balances(rows: Iterable[StatementRow]) -> list[tuple[StatementRow, Decimal]]:
    """Pair each row with the running balance after it (credits add, debits subtract)."""
    balance = Decimal(0)
    paired: list[tuple[StatementRow, Decimal]] = []
    for row in rows:
        balance += row.signed_amount
        paired.append((row, balance))
    return paired
