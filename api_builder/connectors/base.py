"""
Abstract base class for provider connectors.

A connector is built from a provider descriptor (see providers.json) and
exposes the same three steps for every provider: where to send the user to
authorize, how to turn the callback into a credential, and how to describe
what the connected account exposes.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

import httpx

from .errors import SchemaFetchError

logger = logging.getLogger(__name__)


@dataclass
class ConnectionResult:
    """Outcome of a successful authorization"""
    provider_id: str
    credential: Dict[str, Any] = field(repr=False)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)


class Connector(ABC):
    """Contract shared by every provider connector."""

    #: whether the authorization round trip carries a state token
    uses_state = False

    def __init__(
        self,
        descriptor: Dict[str, Any],
        backend_url: str = "http://localhost:3002",
        frontend_url: str = "http://localhost:8080",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.descriptor = descriptor
        self.provider_id: str = descriptor["id"]
        self.name: str = descriptor.get("name", self.provider_id)
        self.backend_url = backend_url.rstrip("/")
        self.frontend_url = frontend_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    def get_auth_url(self, state: Optional[str] = None) -> str:
        """URL the user's browser is sent to in order to connect the provider."""

    @abstractmethod
    async def handle_callback(self, params: Mapping[str, str]) -> ConnectionResult:
        """Turn the callback query into a credential."""

    @abstractmethod
    async def get_schema(self, credential: Dict[str, Any]) -> Dict[str, Any]:
        """Describe what the connected account exposes."""

    def required_env(self) -> List[str]:
        return list(self.descriptor.get("env", {}).values())

    def check_requirements(self) -> Dict[str, Any]:
        """Check which of the provider's environment variables are set"""
        missing = [name for name in self.required_env() if not os.environ.get(name)]
        present = [name for name in self.required_env() if os.environ.get(name)]
        return {
            "ready": not missing,
            "missing_env": missing,
            "present_env": present,
        }

    def env_value(self, key: str) -> Optional[str]:
        env_name = self.descriptor.get("env", {}).get(key)
        return os.environ.get(env_name) if env_name else None

    @property
    def redirect_uri(self) -> str:
        return f"{self.backend_url}/api/plugins/auth/{self.provider_id}/callback"

    def frontend_redirect(self, status: str) -> str:
        query = urlencode({"auth_status": status, "plugin": self.provider_id})
        return f"{self.frontend_url}/dashboard?{query}"

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def fetch_samples(
        self,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run the provider's read-only sample requests concurrently.

        Args:
            headers: Headers added to every request (auth, versioning)
            params: Query parameters added to every request

        Returns:
            Mapping of sample name to decoded JSON body
        """
        samples = self.descriptor.get("samples", {})
        base_headers = dict(self.descriptor.get("headers", {}))
        base_headers.update(headers or {})

        async with self.client() as client:

            async def fetch(name: str, spec: Dict[str, Any]) -> Any:
                query = dict(spec.get("params", {}))
                query.update(params or {})
                response = await client.request(
                    spec.get("method", "GET"),
                    spec["url"],
                    params=query or None,
                    json=spec.get("json"),
                    headers=base_headers,
                )
                response.raise_for_status()
                return response.json()

            try:
                results = await asyncio.gather(
                    *(fetch(name, spec) for name, spec in samples.items())
                )
            except httpx.HTTPStatusError as e:
                raise SchemaFetchError(
                    f"{self.name} answered {e.response.status_code} while fetching schema",
                    self.provider_id,
                ) from e
            except (httpx.HTTPError, ValueError) as e:
                raise SchemaFetchError(
                    f"Failed to fetch {self.name} schema: {e}", self.provider_id
                ) from e

        logger.info(f"Fetched {len(results)} schema samples from {self.provider_id}")
        return dict(zip(samples.keys(), results))

    def describe(self) -> Dict[str, Any]:
        """Public summary of the provider for listings"""
        return {
            "id": self.provider_id,
            "name": self.name,
            "description": self.descriptor.get("description", ""),
            "category": self.descriptor.get("category", "other"),
            "auth_type": self.descriptor.get("auth_type", "oauth2"),
        }
