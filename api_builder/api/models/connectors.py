#!/usr/bin/env python3
"""
Pydantic models for connector endpoints
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


class ProviderSummary(BaseModel):
    """A provider in listings, with readiness of its credentials"""
    id: str = Field(..., description="Provider identifier")
    name: str = Field(..., description="Display name")
    description: str = Field("", description="What the provider offers")
    category: str = Field("other", description="Provider category")
    auth_type: str = Field(..., description="oauth2, api_key or none")
    ready: bool = Field(..., description="All required environment variables are set")
    missing_env: List[str] = Field(default_factory=list, description="Unset environment variables")
    present_env: List[str] = Field(default_factory=list, description="Set environment variables")


class ProviderListResponse(BaseModel):
    providers: List[ProviderSummary] = Field(..., description="Known providers")
    total: int = Field(..., description="Number of providers")
    categories: List[str] = Field(default_factory=list, description="All provider categories")


class ProviderSearchResponse(BaseModel):
    results: List[ProviderSummary] = Field(..., description="Matching providers")
    total: int = Field(..., description="Number of matches")
    query: Optional[str] = Field(None, description="Search query used")
    category: Optional[str] = Field(None, description="Category filter applied")


class ProviderDetails(ProviderSummary):
    """A provider with its connection status"""
    scopes: Optional[str] = Field(None, description="OAuth scopes requested")
    connected: bool = Field(False, description="A connection is stored for this provider")
    connected_at: Optional[datetime] = Field(None, description="When the connection was made")


class AuthStatusResponse(BaseModel):
    provider_id: str = Field(..., description="Provider identifier")
    authenticated: bool = Field(..., description="A connection is stored for this provider")
    auth_url: str = Field(..., description="Where to start authorization")
    message: str = Field(..., description="Human readable status")
    connected_at: Optional[datetime] = Field(None, description="When the connection was made")
    ready: bool = Field(..., description="Server-side credentials are configured")
    missing_env: List[str] = Field(default_factory=list, description="Unset environment variables")


class SchemaResponse(BaseModel):
    provider_id: str = Field(..., description="Provider identifier")
    schema_: Dict[str, Any] = Field(..., alias="schema", description="Probe results by name")

    model_config = {"populate_by_name": True}


class DatasetSchemaRequest(BaseModel):
    """A JSON dataset, as text or already structured"""
    data: Union[str, List[Any], Dict[str, Any]] = Field(..., description="Dataset to analyze")


class DatasetField(BaseModel):
    name: str = Field(..., description="Field name")
    type: str = Field(..., description="Inferred field type")
    required: bool = Field(..., description="Sample value is not null")
    sample: Any = Field(None, description="Sample value")


class DatasetSchemaResponse(BaseModel):
    name: str = Field(..., description="Dataset name")
    record_count: int = Field(..., description="Number of records")
    fields: List[DatasetField] = Field(..., description="Inferred fields")
    sample_data: List[Any] = Field(..., description="Up to three records")


class WorkflowTriggerRequest(BaseModel):
    webhook_url: str = Field(..., min_length=1, description="n8n webhook URL")
    data: Dict[str, Any] = Field(..., description="Data sent to the workflow")
    headers: Optional[Dict[str, str]] = Field(None, description="Extra request headers")


class WorkflowTriggerResponse(BaseModel):
    success: bool = Field(..., description="The webhook accepted the data")
    execution_id: Optional[str] = Field(None, description="Execution id reported by n8n")
    data: Any = Field(None, description="Webhook response body")
    status: int = Field(..., description="Webhook HTTP status")
    timestamp: datetime = Field(..., description="When the workflow was triggered")
