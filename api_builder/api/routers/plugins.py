#!/usr/bin/env python3
"""
FastAPI router for plugin toggles
"""

from typing import List

from fastapi import APIRouter, HTTPException

from ..dependencies import get_plugin_store
from ..models.projects import Plugin, PluginToggleResponse

router = APIRouter(tags=["plugins"])


@router.get("/plugins", response_model=List[Plugin])
async def list_plugins():
    """List all plugins and whether they are enabled"""
    return get_plugin_store().list()


@router.post("/plugins/{plugin_id}/enable", response_model=PluginToggleResponse)
async def enable_plugin(plugin_id: str):
    plugin = get_plugin_store().enable(plugin_id)
    if plugin is None:
        raise HTTPException(status_code=404, detail="Plugin not found")
    return PluginToggleResponse(success=True, plugin=plugin)


@router.post("/plugins/{plugin_id}/disable", response_model=PluginToggleResponse)
async def disable_plugin(plugin_id: str):
    plugin = get_plugin_store().disable(plugin_id)
    if plugin is None:
        raise HTTPException(status_code=404, detail="Plugin not found")
    return PluginToggleResponse(success=True, plugin=plugin)
