"""
Connector for providers authenticated by a static API key.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from .base import ConnectionResult, Connector
from .errors import MissingCredentialsError

logger = logging.getLogger(__name__)


class ApiKeyConnector(Connector):
    """API key passed as a query parameter on every request"""

    def get_auth_url(self, state: Optional[str] = None) -> str:
        # No remote consent screen; the frontend collects the key
        return self.frontend_redirect("setup")

    def _resolve_key(self, supplied: Optional[str]) -> str:
        key = supplied or self.env_value("api_key")
        if not key:
            raise MissingCredentialsError(
                f"No API key for {self.name}: pass api_key or set {', '.join(self.required_env())}",
                self.provider_id,
            )
        return key

    async def handle_callback(self, params: Mapping[str, str]) -> ConnectionResult:
        key = self._resolve_key(params.get("api_key"))
        return ConnectionResult(
            provider_id=self.provider_id,
            credential={"api_key": key},
            metadata={"source": "request" if params.get("api_key") else "environment"},
        )

    async def get_schema(self, credential: Dict[str, Any]) -> Dict[str, Any]:
        key = self._resolve_key((credential or {}).get("api_key"))
        settings = self.descriptor.get("api_key", {})

        samples = await self.fetch_samples(params={settings.get("param", "apikey"): key})
        return {
            "provider": self.name,
            "available_functions": list(settings.get("functions", [])),
            "sample_data": samples,
        }
