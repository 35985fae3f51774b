"""
evesync Core

Shared infrastructure: configuration, logging, errors, the remote client
and credential providers.
"""

from .auth import CredentialProvider, SSOCredentialProvider, StaticCredentialProvider
from .client import ENDPOINTS, AsyncRemoteClient, RemoteFetch
from .config import SyncSettings, get_settings, reset_settings
from .constants import TRADE_HUBS
from .errors import (
    AuthError,
    NormalizationError,
    PartialReconciliationError,
    RateLimitError,
    SyncError,
    TransportError,
)

__all__ = [
    "AsyncRemoteClient",
    "ENDPOINTS",
    "RemoteFetch",
    "CredentialProvider",
    "SSOCredentialProvider",
    "StaticCredentialProvider",
    "SyncSettings",
    "get_settings",
    "reset_settings",
    "TRADE_HUBS",
    "SyncError",
    "TransportError",
    "RateLimitError",
    "AuthError",
    "PartialReconciliationError",
    "NormalizationError",
]
