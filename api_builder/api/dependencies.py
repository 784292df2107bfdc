#!/usr/bin/env python3
"""
FastAPI dependencies for the API Builder server
"""

import logging
from pathlib import Path
from typing import Optional

from ..config import BuilderConfig
from ..connectors import ConnectionStore, ConnectorRegistry
from ..generation import GenerationManager
from ..tracing import WorkflowTracker
from ..monitoring import APIMonitoringService
from ..stores import PluginStore, ProjectStore

logger = logging.getLogger(__name__)

# Global services, created once per process
_config: Optional[BuilderConfig] = None
_monitoring: Optional[APIMonitoringService] = None
_projects: Optional[ProjectStore] = None
_plugins: Optional[PluginStore] = None
_connectors: Optional[ConnectorRegistry] = None
_connections: Optional[ConnectionStore] = None
_generation: Optional[GenerationManager] = None


def init_services(config: Optional[BuilderConfig] = None, transport=None) -> None:
    """Create every service from configuration"""
    global _config, _monitoring, _projects, _plugins, _connectors, _connections, _generation

    _config = config or BuilderConfig()
    data_dir = _config.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)

    _monitoring = APIMonitoringService(
        data_file=data_dir / "api-monitoring.json",
        max_stored_calls=_config.get("monitoring.max_stored_calls", 10000),
        max_stored_metrics=_config.get("monitoring.max_stored_metrics", 1440),
        thresholds=_config.get("monitoring.thresholds"),
        memory_warmup=_config.get("monitoring.memory_warmup", 30),
    )
    _monitoring.load()

    _projects = ProjectStore(data_dir / "projects.json")
    _plugins = PluginStore(data_dir / "plugins.json")

    custom_registry = _config.get("connectors.custom_registry")
    _connectors = ConnectorRegistry(
        custom_registry_path=Path(custom_registry) if custom_registry else None,
        backend_url=_config.get("urls.backend"),
        frontend_url=_config.get("urls.frontend"),
        timeout=_config.get("connectors.timeout", 10.0),
        transport=transport,
    )
    _connections = ConnectionStore()
    _generation = GenerationManager(
        stage_scale=_config.get("generation.stage_scale", 1.0),
        task_ttl=_config.get("generation.task_ttl", 3600),
        workflow=WorkflowTracker(_config.get("generation.max_stored_steps", 10000)),
    )

    logger.info(f"📚 Loaded {len(_connectors)} providers, {len(_projects)} projects, data in {data_dir}")


def reset_services() -> None:
    global _config, _monitoring, _projects, _plugins, _connectors, _connections, _generation
    _config = _monitoring = _projects = _plugins = _connectors = _connections = _generation = None


def services_ready() -> bool:
    return _config is not None


def _ensure_loaded():
    if _config is None:
        init_services()


def get_config() -> BuilderConfig:
    _ensure_loaded()
    return _config


def get_monitoring_service() -> APIMonitoringService:
    _ensure_loaded()
    return _monitoring


def get_project_store() -> ProjectStore:
    _ensure_loaded()
    return _projects


def get_plugin_store() -> PluginStore:
    _ensure_loaded()
    return _plugins


def get_connector_registry() -> ConnectorRegistry:
    _ensure_loaded()
    return _connectors


def get_connection_store() -> ConnectionStore:
    _ensure_loaded()
    return _connections


def get_generation_manager() -> GenerationManager:
    _ensure_loaded()
    return _generation
