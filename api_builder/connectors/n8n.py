"""
n8n connector: no remote authorization, data is pushed to workflow webhooks.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import httpx

from .base import ConnectionResult, Connector
from .errors import ConnectorError, WorkflowTriggerError

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT = 30.0
USER_AGENT = "APIBuilder-n8n-Integration/1.0"


class N8nConnector(Connector):

    def get_auth_url(self, state: Optional[str] = None) -> str:
        # The webhook URL is configured in the frontend
        return self.frontend_redirect("setup")

    async def handle_callback(self, params: Mapping[str, str]) -> ConnectionResult:
        logger.info("n8n integration setup complete")
        return ConnectionResult(provider_id=self.provider_id, credential={})

    async def get_schema(self, credential: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.descriptor.get("description", ""),
            **self.descriptor.get("schema", {}),
        }

    async def trigger_workflow(
        self,
        webhook_url: str,
        data: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        POST data to an n8n webhook.

        Args:
            webhook_url: Webhook URL copied from the n8n workflow
            data: JSON body sent to the workflow
            headers: Extra request headers

        Returns:
            success flag, execution id (when n8n reports one), response body,
            status code and timestamp
        """
        target = urlparse(webhook_url)
        if target.scheme not in ("http", "https") or not target.netloc:
            raise ConnectorError("Webhook URL must be an http(s) URL", self.provider_id)

        request_headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        request_headers.update(headers or {})

        # webhook paths act as secrets; only the host is logged
        logger.info(f"Triggering n8n workflow on {target.netloc} with keys {sorted(data)}")
        try:
            async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT, transport=self.transport) as client:
                response = await client.post(webhook_url, json=data, headers=request_headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise WorkflowTriggerError(
                f"n8n webhook answered {e.response.status_code}", self.provider_id
            ) from e
        except httpx.HTTPError as e:
            raise WorkflowTriggerError(
                f"Failed to trigger n8n workflow: {type(e).__name__}", self.provider_id
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = response.text

        return {
            "success": True,
            "execution_id": response.headers.get("x-n8n-execution-id"),
            "data": body,
            "status": response.status_code,
            "timestamp": datetime.now(timezone.utc),
        }
