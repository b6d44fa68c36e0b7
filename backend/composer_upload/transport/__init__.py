"""Transports that move accepted files to storage."""
from .base import (
    REMOVED_BY_CANCEL_ALL,
    REMOVED_BY_USER,
    BaseTransport,
    TransferResponse,
    Transport,
)
from .http import HttpTransport

__all__ = [
    "REMOVED_BY_CANCEL_ALL",
    "REMOVED_BY_USER",
    "BaseTransport",
    "TransferResponse",
    "Transport",
    "HttpTransport",
]
