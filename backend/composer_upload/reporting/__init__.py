"""Error aggregation and presentation for upload batches."""
from .aggregator import (
    ErrorAggregator,
    ErrorPresenter,
    ErrorRecord,
    LoggingPresenter,
    describe_bulk_upload_errors,
    describe_upload_error,
)

__all__ = [
    "ErrorAggregator",
    "ErrorPresenter",
    "ErrorRecord",
    "LoggingPresenter",
    "describe_bulk_upload_errors",
    "describe_upload_error",
]
