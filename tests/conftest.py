"""Shared test fixtures for settings, HTTP mocking and transaction records."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from erp_exports.core.config import Settings
from erp_exports.lib.export_jobs.client import ExportApiClient

BASE_URL = "https://erp.test/api"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Test application settings."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        api_base_url=BASE_URL,
        api_token="test-token",
        organization_id=7,
        export_dir=str(tmp_path / "exports"),
        export_poll_interval=0.01,
        export_poll_max_backoff=0.05,
    )


@pytest.fixture
def make_client() -> Callable[..., ExportApiClient]:
    """Factory for an ExportApiClient backed by an httpx.MockTransport handler."""

    def _make(handler: Handler, *, token: str | None = "test-token", organization_id: int | None = 7) -> ExportApiClient:
        return ExportApiClient(
            BASE_URL,
            token=token,
            organization_id=organization_id,
            transport=httpx.MockTransport(handler),
        )

    return _make


@pytest.fixture
def transaction_records() -> list[dict[str, Any]]:
    """Three transactions: two credits and one debit."""
    return [
        {
            "time": "2024-03-03T09:15:00Z",
            "account_nickname": "Main Current",
            "transaction_type": "Credit",
            "amount": "1500.50",
            "from_party": "Acme Ltd",
            "to_party": "Us",
            "purpose": "Invoice 42",
            "bill_no": "B-42",
            "utr_number": "UTR0003",
        },
        {
            "time": "2024-03-01T10:00:00Z",
            "account_nickname": "Main Current",
            "transaction_type": "Debit",
            "amount": 200,
            "from_party": "Us",
            "to_party": "Landlord",
            "purpose": "Rent",
            "bill_no": "",
            "utr_number": "UTR0001",
        },
        {
            "time": "2024-03-02T12:30:00Z",
            "account_nickname": "Savings",
            "transaction_type": "Credit",
            "amount": "99.995",
            "from_party": "Bank",
            "to_party": "Us",
            "purpose": "Interest",
            "bill_no": None,
            "utr_number": "UTR0002",
        },
    ]
