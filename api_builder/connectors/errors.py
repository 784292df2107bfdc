"""
Exceptions raised by connectors.

Each carries the HTTP status the API layer answers with.
"""


class ConnectorError(Exception):
    """Base class for connector failures"""
    status_code = 400

    def __init__(self, message: str, provider_id: str = None):
        super().__init__(message)
        self.message = message
        self.provider_id = provider_id


class ProviderNotFoundError(ConnectorError):
    status_code = 404

    def __init__(self, provider_id: str):
        super().__init__(f"Provider '{provider_id}' not found", provider_id)


class MissingCredentialsError(ConnectorError):
    """Client credentials, API key or stored connection is absent"""
    status_code = 400


class InvalidStateError(ConnectorError):
    """OAuth state token is unknown, reused or issued for another provider"""
    status_code = 400


class TokenExchangeError(ConnectorError):
    status_code = 502


class SchemaFetchError(ConnectorError):
    status_code = 502


class WorkflowTriggerError(ConnectorError):
    status_code = 502
