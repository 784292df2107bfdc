"""
Generic OAuth 2.0 authorization-code connector.

Provider differences (endpoints, scopes, how the token request is encoded and
how the client authenticates) come from the descriptor's ``oauth`` block.
"""

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

import httpx

from .base import ConnectionResult, Connector
from .errors import MissingCredentialsError, TokenExchangeError

logger = logging.getLogger(__name__)


class OAuthConnector(Connector):
    """Authorization-code flow driven by provider descriptor data"""

    uses_state = True

    @property
    def oauth(self) -> Dict[str, Any]:
        return self.descriptor.get("oauth", {})

    def _client_credentials(self) -> tuple:
        client_id = self.env_value("client_id")
        client_secret = self.env_value("client_secret")
        if not client_id or not client_secret:
            raise MissingCredentialsError(
                f"{self.name} is not configured: set {', '.join(self.required_env())}",
                self.provider_id,
            )
        return client_id, client_secret

    def get_auth_url(self, state: Optional[str] = None) -> str:
        client_id, _ = self._client_credentials()

        params = {
            "client_id": client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
        }
        if self.oauth.get("scopes"):
            params["scope"] = self.oauth["scopes"]
        if state:
            params["state"] = state
        params.update(self.oauth.get("extra_params", {}))

        return f"{self.oauth['authorize_url']}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for a token payload."""
        client_id, client_secret = self._client_credentials()

        body = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        auth = None
        if self.oauth.get("client_auth", "body") == "basic":
            auth = httpx.BasicAuth(client_id, client_secret)
        else:
            body["client_id"] = client_id
            body["client_secret"] = client_secret

        request_kwargs: Dict[str, Any] = {"auth": auth, "headers": {"Accept": "application/json"}}
        if self.oauth.get("token_encoding", "form") == "json":
            request_kwargs["json"] = body
        else:
            request_kwargs["data"] = body

        try:
            async with self.client() as client:
                response = await client.post(self.oauth["token_url"], **request_kwargs)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            raise TokenExchangeError(
                f"{self.name} rejected the authorization code ({e.response.status_code})",
                self.provider_id,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TokenExchangeError(f"Token exchange with {self.name} failed: {e}", self.provider_id) from e

        # Slack reports failures with 200 and ok=false
        if payload.get("ok") is False or "error" in payload or "access_token" not in payload:
            raise TokenExchangeError(
                f"{self.name} token response had no access token: {payload.get('error', 'unknown error')}",
                self.provider_id,
            )

        return payload

    async def handle_callback(self, params: Mapping[str, str]) -> ConnectionResult:
        if params.get("error"):
            raise TokenExchangeError(
                f"{self.name} authorization was denied: {params['error']}", self.provider_id
            )
        code = params.get("code")
        if not code:
            raise TokenExchangeError("No authorization code provided", self.provider_id)

        payload = await self.exchange_code(code)
        credential = {
            "access_token": payload["access_token"],
            "refresh_token": payload.get("refresh_token"),
            "token_type": payload.get("token_type", "bearer"),
            "expires_in": payload.get("expires_in"),
        }
        metadata = {
            key: payload[key]
            for key in ("scope", "workspace_name", "workspace_id", "hub_id", "team")
            if key in payload
        }

        logger.info(f"🔗 Connected {self.provider_id}")
        return ConnectionResult(provider_id=self.provider_id, credential=credential, metadata=metadata)

    def auth_headers(self, credential: Dict[str, Any]) -> Dict[str, str]:
        token = credential.get("access_token")
        if not token:
            raise MissingCredentialsError(f"{self.name} is not connected", self.provider_id)
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    async def get_schema(self, credential: Dict[str, Any]) -> Dict[str, Any]:
        return await self.fetch_samples(headers=self.auth_headers(credential))
