"""
Registry of known providers and the connectors built from them.
"""

import json
import logging
import secrets
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .api_key import ApiKeyConnector
from .base import Connector
from .custom_dataset import CustomDatasetConnector
from .errors import InvalidStateError, ProviderNotFoundError
from .jira import JiraConnector
from .n8n import N8nConnector
from .oauth import OAuthConnector

logger = logging.getLogger(__name__)

PROVIDERS_FILE = Path(__file__).parent / "providers.json"
STATE_TTL_SECONDS = 600

CONNECTOR_CLASSES = {
    "jira": JiraConnector,
    "custom_dataset": CustomDatasetConnector,
    "n8n": N8nConnector,
}

AUTH_TYPE_CLASSES = {
    "oauth2": OAuthConnector,
    "api_key": ApiKeyConnector,
    "none": CustomDatasetConnector,
}


class ConnectorRegistry:
    """Provider descriptors plus one connector instance per provider"""

    def __init__(
        self,
        custom_registry_path: Optional[Path] = None,
        backend_url: str = "http://localhost:3002",
        frontend_url: str = "http://localhost:8080",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.custom_registry_path = Path(custom_registry_path) if custom_registry_path else None
        self.backend_url = backend_url
        self.frontend_url = frontend_url
        self.timeout = timeout
        self.transport = transport

        self._providers: Dict[str, Dict[str, Any]] = self._load_file(PROVIDERS_FILE)
        if self.custom_registry_path and self.custom_registry_path.exists():
            custom = self._load_file(self.custom_registry_path)
            logger.info(f"📦 Loading {len(custom)} custom providers from {self.custom_registry_path}")
            self._providers.update(custom)

        self._connectors: Dict[str, Connector] = {}
        self._states: Dict[str, tuple] = {}

    def _load_file(self, path: Path) -> Dict[str, Dict[str, Any]]:
        try:
            with open(path) as f:
                providers = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️  Failed to load provider registry {path}: {e}")
            return {}

        for provider_id, descriptor in providers.items():
            descriptor.setdefault("id", provider_id)
        return providers

    def _build(self, descriptor: Dict[str, Any]) -> Connector:
        connector_class = CONNECTOR_CLASSES.get(descriptor.get("connector", "")) or AUTH_TYPE_CLASSES.get(
            descriptor.get("auth_type", "oauth2"), OAuthConnector
        )
        return connector_class(
            descriptor,
            backend_url=self.backend_url,
            frontend_url=self.frontend_url,
            timeout=self.timeout,
            transport=self.transport,
        )

    def get_connector(self, provider_id: str) -> Connector:
        """Connector for a provider; raises ProviderNotFoundError when unknown"""
        if provider_id not in self._connectors:
            descriptor = self._providers.get(provider_id)
            if descriptor is None:
                raise ProviderNotFoundError(provider_id)
            self._connectors[provider_id] = self._build(descriptor)
        return self._connectors[provider_id]

    def has_provider(self, provider_id: str) -> bool:
        return provider_id in self._providers

    def get_provider(self, provider_id: str) -> Optional[Dict[str, Any]]:
        return self._providers.get(provider_id)

    def list_providers(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        List provider summaries with readiness

        Args:
            category: Only providers in this category
            search: Case-insensitive match on id, name or description
        """
        providers = []
        for provider_id in self._providers:
            connector = self.get_connector(provider_id)
            summary = connector.describe()

            if category and summary["category"] != category:
                continue
            if search:
                needle = search.lower()
                haystack = (summary["id"], summary["name"], summary["description"])
                if not any(needle in value.lower() for value in haystack):
                    continue

            summary.update(connector.check_requirements())
            providers.append(summary)
        return providers

    def get_categories(self) -> List[str]:
        return sorted({p.get("category", "other") for p in self._providers.values()})

    def issue_state(self, provider_id: str) -> str:
        """Create a single-use OAuth state token bound to a provider"""
        self._prune_states()
        state = secrets.token_urlsafe(24)
        self._states[state] = (provider_id, time.monotonic() + STATE_TTL_SECONDS)
        return state

    def consume_state(self, provider_id: str, state: Optional[str]) -> None:
        """Validate and discard a state token"""
        self._prune_states()
        entry = self._states.pop(state, None) if state else None
        if entry is None or entry[0] != provider_id:
            raise InvalidStateError("Invalid or expired OAuth state", provider_id)

    def _prune_states(self):
        now = time.monotonic()
        expired = [state for state, (_, expires) in self._states.items() if expires < now]
        for state in expired:
            del self._states[state]

    def __len__(self) -> int:
        return len(self._providers)
