#!/usr/bin/env python3
"""
Tests for provider connectors and the connector registry
"""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from api_builder.connectors import (
    ConnectionStore,
    ConnectorError,
    ConnectorRegistry,
    InvalidStateError,
    MissingCredentialsError,
    ProviderNotFoundError,
    SchemaFetchError,
    TokenExchangeError,
    WorkflowTriggerError,
)
from api_builder.connectors.api_key import ApiKeyConnector
from api_builder.connectors.base import ConnectionResult
from api_builder.connectors.custom_dataset import CustomDatasetConnector
from api_builder.connectors.jira import JiraConnector
from api_builder.connectors.n8n import N8nConnector
from api_builder.connectors.oauth import OAuthConnector

PROVIDER_ENV = [
    "HUBSPOT_CLIENT_ID", "HUBSPOT_CLIENT_SECRET",
    "NOTION_CLIENT_ID", "NOTION_CLIENT_SECRET",
    "SLACK_CLIENT_ID", "SLACK_CLIENT_SECRET",
    "JIRA_CLIENT_ID", "JIRA_CLIENT_SECRET",
    "ALPHA_VANTAGE_API_KEY",
]


@pytest.fixture
def provider_env(monkeypatch):
    for name in PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)
    for prefix in ("HUBSPOT", "NOTION", "SLACK", "JIRA"):
        monkeypatch.setenv(f"{prefix}_CLIENT_ID", f"{prefix.lower()}-id")
        monkeypatch.setenv(f"{prefix}_CLIENT_SECRET", f"{prefix.lower()}-secret")
    return monkeypatch


def registry_with(handler) -> ConnectorRegistry:
    return ConnectorRegistry(transport=httpx.MockTransport(handler))


def token_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"access_token": "tok", "refresh_token": "ref", "expires_in": 1800})


class TestConnectorRegistry:

    def test_builds_connector_by_auth_type(self):
        registry = ConnectorRegistry()

        assert isinstance(registry.get_connector("hubspot"), OAuthConnector)
        assert isinstance(registry.get_connector("jira"), JiraConnector)
        assert isinstance(registry.get_connector("n8n"), N8nConnector)
        assert isinstance(registry.get_connector("alpha-vantage"), ApiKeyConnector)
        assert isinstance(registry.get_connector("custom-dataset"), CustomDatasetConnector)

    def test_unknown_provider(self):
        with pytest.raises(ProviderNotFoundError) as exc_info:
            ConnectorRegistry().get_connector("myspace")
        assert exc_info.value.status_code == 404

    def test_list_and_search(self, provider_env):
        registry = ConnectorRegistry()

        providers = registry.list_providers()
        ids = {p["id"] for p in providers}
        assert len(providers) == 13
        assert {"google-sheets", "sentry", "the-odds-api", "google-scholar"} <= ids

        assert [p["id"] for p in registry.list_providers(search="sheet")] == ["google-sheets"]
        assert [p["id"] for p in registry.list_providers(category="finance")] == ["alpha-vantage"]

        hubspot = next(p for p in providers if p["id"] == "hubspot")
        assert hubspot["ready"] is True
        assert hubspot["present_env"] == ["HUBSPOT_CLIENT_ID", "HUBSPOT_CLIENT_SECRET"]

    def test_requirements_report_missing_env(self, monkeypatch):
        monkeypatch.setenv("HUBSPOT_CLIENT_ID", "id")
        monkeypatch.delenv("HUBSPOT_CLIENT_SECRET", raising=False)

        req = ConnectorRegistry().get_connector("hubspot").check_requirements()

        assert req["ready"] is False
        assert req["missing_env"] == ["HUBSPOT_CLIENT_SECRET"]

    def test_custom_registry_file(self, tmp_path):
        custom = tmp_path / "providers.json"
        custom.write_text(json.dumps({
            "acme": {
                "name": "Acme Data",
                "auth_type": "api_key",
                "env": {"api_key": "ACME_KEY"},
                "samples": {"ping": {"url": "https://acme.test/ping"}},
            }
        }))

        registry = ConnectorRegistry(custom_registry_path=custom)
        connector = registry.get_connector("acme")

        assert isinstance(connector, ApiKeyConnector)
        assert connector.provider_id == "acme"
        assert len(registry) == 14

    def test_state_tokens_are_single_use(self):
        registry = ConnectorRegistry()
        state = registry.issue_state("hubspot")

        registry.consume_state("hubspot", state)

        with pytest.raises(InvalidStateError):
            registry.consume_state("hubspot", state)

    def test_state_is_bound_to_provider(self):
        registry = ConnectorRegistry()
        state = registry.issue_state("hubspot")

        with pytest.raises(InvalidStateError):
            registry.consume_state("slack", state)
        with pytest.raises(InvalidStateError):
            registry.consume_state("hubspot", None)


class TestOAuthConnector:

    def test_auth_url(self, provider_env):
        connector = ConnectorRegistry().get_connector("hubspot")

        url = urlparse(connector.get_auth_url("xyz"))
        params = parse_qs(url.query)

        assert url.netloc == "app.hubspot.com"
        assert params["client_id"] == ["hubspot-id"]
        assert params["redirect_uri"] == ["http://localhost:3002/api/plugins/auth/hubspot/callback"]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["xyz"]
        assert "contacts" in params["scope"][0]

    def test_auth_url_extra_params(self, provider_env):
        params = parse_qs(urlparse(ConnectorRegistry().get_connector("notion").get_auth_url("s")).query)

        assert params["owner"] == ["user"]
        assert "scope" not in params

    def test_auth_url_requires_client_credentials(self, monkeypatch):
        monkeypatch.delenv("HUBSPOT_CLIENT_ID", raising=False)

        with pytest.raises(MissingCredentialsError):
            ConnectorRegistry().get_connector("hubspot").get_auth_url("s")

    async def test_form_exchange_with_body_credentials(self, provider_env):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = parse_qs(request.content.decode())
            seen["auth"] = request.headers.get("authorization")
            return token_response(request)

        connector = registry_with(handler).get_connector("hubspot")
        result = await connector.handle_callback({"code": "abc"})

        assert seen["url"] == "https://api.hubapi.com/oauth/v1/token"
        assert seen["body"]["code"] == ["abc"]
        assert seen["body"]["client_secret"] == ["hubspot-secret"]
        assert seen["body"]["grant_type"] == ["authorization_code"]
        assert seen["auth"] is None
        assert result.credential["access_token"] == "tok"
        assert result.credential["refresh_token"] == "ref"

    async def test_json_exchange_with_basic_auth(self, provider_env):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return token_response(request)

        connector = registry_with(handler).get_connector("notion")
        await connector.handle_callback({"code": "abc"})

        assert seen["body"]["code"] == "abc"
        assert "client_secret" not in seen["body"]
        assert seen["auth"].startswith("Basic ")

    async def test_provider_error_payload(self, provider_env):
        def handler(request):
            return httpx.Response(200, json={"ok": False, "error": "invalid_code"})

        connector = registry_with(handler).get_connector("slack")

        with pytest.raises(TokenExchangeError) as exc_info:
            await connector.handle_callback({"code": "bad"})
        assert "invalid_code" in str(exc_info.value)

    async def test_rejected_code(self, provider_env):
        connector = registry_with(lambda request: httpx.Response(400, json={})).get_connector("hubspot")

        with pytest.raises(TokenExchangeError):
            await connector.handle_callback({"code": "bad"})

    async def test_missing_code_and_denied_consent(self, provider_env):
        connector = registry_with(token_response).get_connector("hubspot")

        with pytest.raises(TokenExchangeError):
            await connector.handle_callback({})
        with pytest.raises(TokenExchangeError):
            await connector.handle_callback({"error": "access_denied"})

    async def test_schema_samples(self, provider_env):
        def handler(request):
            assert request.headers["authorization"] == "Bearer tok"
            if request.url.path == "/account-info/v3/details":
                return httpx.Response(200, json={"portalId": 42})
            assert request.url.params["limit"] == "1"
            return httpx.Response(200, json={"results": [{"id": "1"}]})

        connector = registry_with(handler).get_connector("hubspot")
        schema = await connector.get_schema({"access_token": "tok"})

        assert schema == {"account": {"portalId": 42}, "contacts": {"results": [{"id": "1"}]}}

    async def test_schema_request_sends_provider_headers(self, provider_env):
        def handler(request):
            assert request.headers["notion-version"] == "2022-06-28"
            if request.method == "POST":
                assert json.loads(request.content)["page_size"] == 5
            return httpx.Response(200, json={"object": "list"})

        schema = await registry_with(handler).get_connector("notion").get_schema({"access_token": "tok"})

        assert set(schema) == {"user", "databases"}

    async def test_schema_failure(self, provider_env):
        connector = registry_with(lambda request: httpx.Response(401, json={})).get_connector("hubspot")

        with pytest.raises(SchemaFetchError) as exc_info:
            await connector.get_schema({"access_token": "expired"})
        assert exc_info.value.status_code == 502

    async def test_schema_without_token(self, provider_env):
        with pytest.raises(MissingCredentialsError):
            await ConnectorRegistry().get_connector("hubspot").get_schema({})


class TestApiKeyConnector:

    def test_auth_url_is_frontend_setup(self):
        connector = ConnectorRegistry().get_connector("alpha-vantage")

        assert connector.get_auth_url() == "http://localhost:8080/dashboard?auth_status=setup&plugin=alpha-vantage"

    async def test_callback_and_schema(self, monkeypatch):
        monkeypatch.delenv("ALPHA_VANTAGE_API_KEY", raising=False)

        def handler(request):
            assert request.url.params["apikey"] == "demo-key"
            assert request.url.params["function"] == "GLOBAL_QUOTE"
            return httpx.Response(200, json={"Global Quote": {"01. symbol": "AAPL"}})

        connector = registry_with(handler).get_connector("alpha-vantage")
        result = await connector.handle_callback({"api_key": "demo-key"})
        schema = await connector.get_schema(result.credential)

        assert "GLOBAL_QUOTE" in schema["available_functions"]
        assert schema["sample_data"]["quote"]["Global Quote"]["01. symbol"] == "AAPL"

    async def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ALPHA_VANTAGE_API_KEY", "env-key")

        result = await ConnectorRegistry().get_connector("alpha-vantage").handle_callback({})

        assert result.credential == {"api_key": "env-key"}
        assert result.metadata["source"] == "environment"

    async def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("ALPHA_VANTAGE_API_KEY", raising=False)

        with pytest.raises(MissingCredentialsError):
            await ConnectorRegistry().get_connector("alpha-vantage").get_schema({})


class TestJiraConnector:

    async def test_projects_of_first_site(self, provider_env):
        def handler(request):
            if request.url.path == "/oauth/token/accessible-resources":
                return httpx.Response(200, json=[{"id": "cloud-1", "name": "acme"}, {"id": "cloud-2"}])
            assert request.url.path == "/ex/jira/cloud-1/rest/api/3/project"
            return httpx.Response(200, json=[{"key": "OPS"}])

        schema = await registry_with(handler).get_connector("jira").get_schema({"access_token": "tok"})

        assert schema["projects"] == [{"key": "OPS"}]
        assert len(schema["resources"]) == 2

    async def test_no_sites(self, provider_env):
        connector = registry_with(lambda request: httpx.Response(200, json=[])).get_connector("jira")

        with pytest.raises(SchemaFetchError, match="No accessible Jira sites"):
            await connector.get_schema({"access_token": "tok"})


class TestN8nConnector:

    async def test_static_schema_without_credentials(self):
        connector = ConnectorRegistry().get_connector("n8n")

        schema = await connector.get_schema({})

        assert connector.get_auth_url().endswith("auth_status=setup&plugin=n8n")
        assert schema["name"] == "n8n Workflow Automation"
        assert len(schema["capabilities"]) == 5
        assert schema["endpoints"][0]["path"] == "/trigger-workflow"

    async def test_trigger_workflow(self):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/webhook/abc"
            assert request.headers["user-agent"].startswith("APIBuilder-n8n")
            assert request.headers["x-team"] == "ops"
            assert json.loads(request.content) == {"order": 7}
            return httpx.Response(200, json={"ok": True}, headers={"x-n8n-execution-id": "exec-1"})

        result = await registry_with(handler).get_connector("n8n").trigger_workflow(
            "https://n8n.example.com/webhook/abc", {"order": 7}, {"x-team": "ops"}
        )

        assert result["success"] is True
        assert result["execution_id"] == "exec-1"
        assert result["data"] == {"ok": True}
        assert result["status"] == 200

    async def test_plain_text_reply(self):
        connector = registry_with(lambda request: httpx.Response(200, text="Workflow started")).get_connector("n8n")

        result = await connector.trigger_workflow("http://localhost:5678/webhook/x", {})

        assert result["data"] == "Workflow started"
        assert result["execution_id"] is None

    async def test_webhook_failure(self):
        connector = registry_with(lambda request: httpx.Response(404)).get_connector("n8n")

        with pytest.raises(WorkflowTriggerError, match="answered 404"):
            await connector.trigger_workflow("https://n8n.example.com/webhook/gone", {"a": 1})

    async def test_rejects_non_http_url(self):
        connector = ConnectorRegistry().get_connector("n8n")

        with pytest.raises(ConnectorError) as excinfo:
            await connector.trigger_workflow("ftp://n8n.example.com/hook", {})
        assert excinfo.value.status_code == 400


class TestConnectionStore:

    def test_record_and_status(self):
        store = ConnectionStore()
        assert store.status("hubspot")["connected"] is False

        store.record(ConnectionResult(provider_id="hubspot", credential={"access_token": "secret"}))

        status = store.status("hubspot")
        assert status["connected"] is True
        assert status["has_schema"] is False
        assert "credential" not in status
        assert store.credential("hubspot") == {"access_token": "secret"}

        store.update_schema("hubspot", {"account": {}})
        assert store.status("hubspot")["has_schema"] is True

        assert store.remove("hubspot") is True
        assert store.get("hubspot") is None

    def test_credential_is_not_in_repr(self):
        result = ConnectionResult(provider_id="slack", credential={"access_token": "secret"})

        assert "secret" not in repr(result)
