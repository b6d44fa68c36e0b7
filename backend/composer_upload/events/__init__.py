"""Notification channels and event payloads for upload sessions."""
from .channel import NotificationChannel
from .schemas import (
    HostCommand,
    HostEvent,
    HostNotification,
    TransportEvent,
    UploadCancelled,
    UploadFailed,
    UploadStarted,
    UploadSucceeded,
)

__all__ = [
    "NotificationChannel",
    "HostCommand",
    "HostEvent",
    "HostNotification",
    "TransportEvent",
    "UploadCancelled",
    "UploadFailed",
    "UploadStarted",
    "UploadSucceeded",
]
