#!/usr/bin/env python3
"""
Pydantic models for project and plugin endpoints
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ProjectEndpoint(BaseModel):
    """An endpoint of a generated API"""
    path: str = Field(..., description="Route path")
    method: str = Field(..., description="HTTP method")
    description: str = Field("", description="What the endpoint does")
    auth: bool = Field(False, description="Whether the endpoint requires authentication")


class Project(BaseModel):
    """A stored API project"""
    id: str = Field(..., description="Project identifier")
    name: str = Field(..., description="Project name")
    description: Optional[str] = Field(None, description="Project description")
    created_at: Optional[str] = Field(None, description="Creation time (ISO 8601)")
    data_model: Dict[str, Any] = Field(default_factory=dict, description="Entities and their fields")
    endpoints: List[ProjectEndpoint] = Field(default_factory=list, description="API endpoints")
    settings: Dict[str, Any] = Field(default_factory=dict, description="Project settings")


class ProjectCreateRequest(BaseModel):
    """Request for creating a project"""
    id: Optional[str] = Field(None, description="Explicit id; defaults to epoch milliseconds")
    name: str = Field(..., min_length=1, description="Project name")
    description: Optional[str] = Field(None, description="Project description")


class DeleteResponse(BaseModel):
    success: bool = Field(..., description="Whether the record was removed")


class Plugin(BaseModel):
    """A plugin toggle"""
    id: str = Field(..., description="Plugin identifier")
    name: str = Field(..., description="Display name")
    version: str = Field("1.0.0", description="Plugin version")
    enabled: bool = Field(False, description="Whether the plugin is enabled")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Plugin metadata")


class PluginToggleResponse(BaseModel):
    success: bool = Field(..., description="Whether the toggle was applied")
    plugin: Plugin = Field(..., description="Plugin after the change")
