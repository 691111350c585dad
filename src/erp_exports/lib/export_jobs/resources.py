"""Exportable backend resources and their endpoints."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ExportResource:
    """Endpoints and request parameters for one exportable resource.

    Attributes:
        name: Short name (used by the CLI).
        export_path: POST endpoint that starts an export.
        status_path: GET endpoint template with a ``{task_id}`` placeholder.
        list_path: List endpoint used by the direct-fetch fallback, or None
            if the resource cannot be generated locally.
        default_stem: File name stem used when the server gives no name.
        filter_keys: Entity filters the export endpoint accepts.
        date_params: Request keys for the start and end of a date range.
    """

    name: str
    export_path: str
    status_path: str
    list_path: str | None
    default_stem: str
    filter_keys: frozenset[str] = frozenset()
    date_params: tuple[str, str] = ("from_date", "to_date")

    def status_url(self, task_id: str) -> str:
        return self.status_path.format(task_id=task_id)

    @property
    def supports_fallback(self) -> bool:
        return self.list_path is not None


TRANSACTIONS = ExportResource(
    name="transactions",
    export_path="/export-transactions/",
    status_path="/export-status/{task_id}/",
    list_path="/transactions/",
    default_stem="transactions_export",
    filter_keys=frozenset({"account_id", "transaction_type"}),
    date_params=("from_date", "to_date"),
)

PRODUCTS = ExportResource(
    name="products",
    export_path="/export-products/",
    status_path="/export-products/{task_id}/",
    list_path=None,
    default_stem="products_export",
    filter_keys=frozenset({"vendor_id", "category_id"}),
    date_params=("start_date", "end_date"),
)

RESOURCES: dict[str, ExportResource] = {r.name: r for r in (TRANSACTIONS, PRODUCTS)}


def get_resource(name: str) -> ExportResource:
    """Look up a resource by name.

    Raises:
        KeyError: If the resource is unknown.
    """
    return RESOURCES[name]
