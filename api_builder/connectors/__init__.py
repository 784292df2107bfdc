"""
Connectors for third-party SaaS providers.
"""

from .base import ConnectionResult, Connector
from .errors import (
    ConnectorError,
    InvalidStateError,
    MissingCredentialsError,
    ProviderNotFoundError,
    SchemaFetchError,
    TokenExchangeError,
    WorkflowTriggerError,
)
from .n8n import N8nConnector
from .registry import ConnectorRegistry
from .store import ConnectionRecord, ConnectionStore

__all__ = [
    "ConnectionRecord",
    "ConnectionResult",
    "ConnectionStore",
    "Connector",
    "ConnectorError",
    "ConnectorRegistry",
    "InvalidStateError",
    "MissingCredentialsError",
    "N8nConnector",
    "ProviderNotFoundError",
    "SchemaFetchError",
    "TokenExchangeError",
    "WorkflowTriggerError",
]
