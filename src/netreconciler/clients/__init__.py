from netreconciler.clients.base import (
    AddressClient,
    AttachmentClient,
    NetworkClient,
    RuleClient,
    StatusClient,
)
from netreconciler.clients.http import BaseHTTPClient, RetryableHTTPError, is_retryable_status
from netreconciler.clients.vps import VPSClient

__all__ = [
    "AddressClient",
    "AttachmentClient",
    "BaseHTTPClient",
    "NetworkClient",
    "RetryableHTTPError",
    "RuleClient",
    "StatusClient",
    "VPSClient",
    "is_retryable_status",
]
