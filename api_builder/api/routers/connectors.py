#!/usr/bin/env python3
"""
FastAPI router for provider connectors and their authorization flow
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from ...connectors import ConnectionResult, ConnectorError, MissingCredentialsError
from ...connectors.custom_dataset import infer_schema
from ...tracing import track_operation
from ..dependencies import get_connection_store, get_connector_registry, get_plugin_store
from ..models.connectors import (
    AuthStatusResponse,
    DatasetSchemaRequest,
    DatasetSchemaResponse,
    ProviderDetails,
    ProviderListResponse,
    ProviderSearchResponse,
    ProviderSummary,
    SchemaResponse,
    WorkflowTriggerRequest,
    WorkflowTriggerResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connectors"])

CUSTOM_DATASET = "custom-dataset"
N8N = "n8n"


def ensure_plugin_enabled(provider_id: str):
    """Reject providers whose plugin entry exists and is switched off"""
    if get_plugin_store().is_disabled(provider_id):
        raise HTTPException(status_code=403, detail=f"Plugin '{provider_id}' is disabled")


@router.get("/connectors", response_model=ProviderListResponse)
async def list_connectors(category: Optional[str] = Query(None, description="Category filter")):
    """List all providers with credential readiness"""
    registry = get_connector_registry()
    providers = [ProviderSummary(**p) for p in registry.list_providers(category=category)]
    return ProviderListResponse(
        providers=providers,
        total=len(providers),
        categories=registry.get_categories(),
    )


@router.get("/connectors/search", response_model=ProviderSearchResponse)
async def search_connectors(
    q: Optional[str] = Query(None, description="Search query"),
    category: Optional[str] = Query(None, description="Category filter"),
):
    """Search providers by query and/or category"""
    if not q and not category:
        raise HTTPException(status_code=400, detail="Query parameter 'q' or 'category' required")

    results = [
        ProviderSummary(**p)
        for p in get_connector_registry().list_providers(category=category, search=q)
    ]
    return ProviderSearchResponse(results=results, total=len(results), query=q, category=category)


@router.get("/connectors/{provider_id}", response_model=ProviderDetails)
async def get_connector_details(provider_id: str):
    """Provider details with readiness and connection status"""
    connector = get_connector_registry().get_connector(provider_id)
    status = get_connection_store().status(provider_id)

    return ProviderDetails(
        **connector.describe(),
        **connector.check_requirements(),
        scopes=connector.descriptor.get("oauth", {}).get("scopes"),
        connected=status["connected"],
        connected_at=status["connected_at"],
    )


@router.get("/connectors/{provider_id}/schema", response_model=SchemaResponse)
async def get_connector_schema(provider_id: str):
    """Describe what the connected account exposes"""
    connector = get_connector_registry().get_connector(provider_id)
    ensure_plugin_enabled(provider_id)

    connections = get_connection_store()
    credential = connections.credential(provider_id)
    if credential is None and connector.uses_state:
        raise MissingCredentialsError(f"{connector.name} is not connected", provider_id)

    async with track_operation("fetch_schema", metadata={"provider": provider_id}):
        schema = await connector.get_schema(credential or {})

    connections.update_schema(provider_id, schema)
    return SchemaResponse(provider_id=provider_id, schema=schema)


@router.post("/connectors/custom-dataset/schema", response_model=DatasetSchemaResponse)
async def analyze_custom_dataset(request: DatasetSchemaRequest):
    """Infer a schema from an uploaded JSON dataset and keep it as the custom-dataset connection"""
    ensure_plugin_enabled(CUSTOM_DATASET)

    schema = infer_schema(request.data)
    get_connection_store().record(
        ConnectionResult(
            provider_id=CUSTOM_DATASET,
            credential={"data": request.data},
            metadata={"record_count": schema["record_count"]},
        ),
        schema,
    )
    return schema


@router.get("/plugins/auth/{provider_id}", response_model=AuthStatusResponse)
async def get_auth_status(provider_id: str):
    """Whether a provider is connected and how to connect it"""
    connector = get_connector_registry().get_connector(provider_id)
    status = get_connection_store().status(provider_id)
    requirements = connector.check_requirements()

    if status["connected"]:
        message = f"{connector.name} is connected"
    elif not requirements["ready"]:
        message = f"{connector.name} is not configured on the server"
    else:
        message = f"{connector.name} authentication required"

    return AuthStatusResponse(
        provider_id=provider_id,
        authenticated=status["connected"],
        auth_url=f"/api/plugins/auth/{provider_id}/start",
        message=message,
        connected_at=status["connected_at"],
        ready=requirements["ready"],
        missing_env=requirements["missing_env"],
    )


@router.get("/plugins/auth/{provider_id}/start")
async def start_auth(provider_id: str):
    """Redirect the browser to the provider's authorization page"""
    registry = get_connector_registry()
    connector = registry.get_connector(provider_id)
    ensure_plugin_enabled(provider_id)

    try:
        state = registry.issue_state(provider_id) if connector.uses_state else None
        url = connector.get_auth_url(state)
    except ConnectorError as e:
        logger.error(f"Cannot start {provider_id} authorization: {e.message}")
        return RedirectResponse(connector.frontend_redirect("error"), status_code=302)

    logger.info(f"Redirecting to {provider_id} authorization")
    return RedirectResponse(url, status_code=302)


@router.get("/plugins/auth/{provider_id}/callback")
async def auth_callback(provider_id: str, request: Request):
    """Complete authorization and send the browser back to the dashboard"""
    registry = get_connector_registry()
    connector = registry.get_connector(provider_id)
    ensure_plugin_enabled(provider_id)

    params = dict(request.query_params)
    try:
        if connector.uses_state:
            registry.consume_state(provider_id, params.get("state"))
        async with track_operation("connect_provider", metadata={"provider": provider_id}):
            result = await connector.handle_callback(params)
    except ConnectorError as e:
        logger.error(f"{provider_id} authorization failed: {e.message}")
        return RedirectResponse(connector.frontend_redirect("error"), status_code=302)

    schema = None
    try:
        schema = await connector.get_schema(result.credential)
    except ConnectorError as e:
        logger.warning(f"Connected {provider_id} but could not fetch schema: {e.message}")

    get_connection_store().record(result, schema)
    return RedirectResponse(connector.frontend_redirect("success"), status_code=302)


@router.post("/n8n/trigger-workflow", response_model=WorkflowTriggerResponse)
async def trigger_n8n_workflow(request: WorkflowTriggerRequest):
    """Push data to an n8n workflow webhook"""
    connector = get_connector_registry().get_connector(N8N)
    ensure_plugin_enabled(N8N)

    async with track_operation("trigger_workflow", metadata={"provider": N8N}):
        return await connector.trigger_workflow(request.webhook_url, request.data, request.headers)
