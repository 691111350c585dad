"""Export jobs library: submit exports, track background jobs, fan out state.

Public API for the export request builder, the job tracker, the
notification bridge and the backend client they share.
"""

from erp_exports.lib.export_jobs.batching import gather_bounded
from erp_exports.lib.export_jobs.builder import ExportRequestBuilder
from erp_exports.lib.export_jobs.client import ExportApiClient, filename_from_content_disposition
from erp_exports.lib.export_jobs.notifications import JobCallback, NotificationBridge, Unsubscribe
from erp_exports.lib.export_jobs.resources import PRODUCTS, RESOURCES, TRANSACTIONS, ExportResource, get_resource
from erp_exports.lib.export_jobs.responses import (
    ExportResponse,
    FileReady,
    InlineRows,
    TaskHandle,
    Unrecognized,
    classify_export_response,
    derive_file_name,
)
from erp_exports.lib.export_jobs.tracker import JobTracker, StatusSource
from erp_exports.lib.export_jobs.types import (
    AsyncSubmission,
    DateRange,
    ExportFormat,
    ExportJob,
    ExportParams,
    JobStatus,
    Progress,
    SubmissionResult,
    SyncSubmission,
    parse_job_status,
)

__all__ = [
    "PRODUCTS",
    "RESOURCES",
    "TRANSACTIONS",
    "AsyncSubmission",
    "DateRange",
    "ExportApiClient",
    "ExportFormat",
    "ExportJob",
    "ExportParams",
    "ExportRequestBuilder",
    "ExportResource",
    "ExportResponse",
    "FileReady",
    "InlineRows",
    "JobCallback",
    "JobStatus",
    "JobTracker",
    "NotificationBridge",
    "Progress",
    "StatusSource",
    "SubmissionResult",
    "SyncSubmission",
    "TaskHandle",
    "Unrecognized",
    "Unsubscribe",
    "classify_export_response",
    "derive_file_name",
    "filename_from_content_disposition",
    "gather_bounded",
    "get_resource",
    "parse_job_status",
]
