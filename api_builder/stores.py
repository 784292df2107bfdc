"""
JSON-file backed stores for projects and plugins.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_PLUGINS = [
    ("auth", "Authentication", True),
    ("cors", "CORS", True),
    ("custom-dataset", "Custom Dataset Upload", True),
    ("rate-limiter", "Rate Limiter", False),
    ("data-validator", "Data Validator", False),
    ("jwt-auth", "JWT Authentication", False),
    ("email-notifications", "Email Notifications", False),
    ("image-upload", "Image Upload & Resize", False),
    ("redis-cache", "Redis Cache", False),
    ("postgresql-db", "PostgreSQL Database", False),
    ("stripe-payments", "Stripe Payments", False),
    ("google-sheets", "Google Sheets API", True),
    ("slack", "Slack Integration", False),
    ("notion", "Notion API", False),
    ("airtable", "Airtable API", False),
    ("hubspot", "HubSpot CRM", False),
    ("n8n", "n8n Workflow Automation", False),
    ("alpha-vantage", "Alpha Vantage Financial Data", False),
]


def default_plugins() -> List[Dict[str, Any]]:
    return [
        {"id": plugin_id, "name": name, "version": "1.0.0", "enabled": enabled, "metadata": {}}
        for plugin_id, name, enabled in DEFAULT_PLUGINS
    ]


def demo_project() -> Dict[str, Any]:
    return {
        "id": "demo-1",
        "name": "E-commerce API",
        "description": "Complete e-commerce backend with authentication",
        "created_at": datetime.now(timezone.utc).isoformat(),
        "data_model": {},
        "endpoints": [],
        "settings": {},
    }


class JsonListStore:
    """A list of records persisted as one JSON array"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._items: List[Dict[str, Any]] = self._load()

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with open(self.path) as f:
                items = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load {self.path}, starting from defaults: {e}")
            return []
        if not isinstance(items, list):
            logger.warning(f"Ignoring {self.path}: expected a JSON array")
            return []
        return items

    def save(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(self._items, f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Failed to save {self.path}: {e}")
            return False

    def list(self) -> List[Dict[str, Any]]:
        return list(self._items)

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        for item in self._items:
            if item.get("id") == item_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)


class ProjectStore(JsonListStore):
    """Projects kept in projects.json"""

    def __init__(self, path: Path):
        super().__init__(path)
        if not self._items:
            self._items = [demo_project()]
            self.save()

    def create(
        self,
        name: str,
        description: Optional[str] = None,
        project_id: Optional[str] = None,
        data_model: Optional[Dict[str, Any]] = None,
        endpoints: Optional[List[Dict[str, Any]]] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create and persist a project.

        Args:
            name: Project name (required)
            description: Free-text description
            project_id: Explicit id; defaults to the current epoch milliseconds

        Returns:
            The stored project record
        """
        if not name or not name.strip():
            raise ValueError("Project name is required")

        project = {
            "id": project_id or str(int(time.time() * 1000)),
            "name": name,
            "description": description,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "data_model": data_model or {},
            "endpoints": endpoints or [],
            "settings": settings or {},
        }
        self._items.append(project)
        self.save()
        logger.info(f"Created project {project['id']} ({name})")
        return project

    def delete(self, project_id: str) -> bool:
        project = self.get(project_id)
        if project is None:
            return False
        self._items.remove(project)
        self.save()
        logger.info(f"Deleted project {project_id}")
        return True


class PluginStore(JsonListStore):
    """Plugin toggles kept in plugins.json"""

    def __init__(self, path: Path):
        super().__init__(path)
        if not self._items:
            self._items = default_plugins()

    def _set_enabled(self, plugin_id: str, enabled: bool) -> Optional[Dict[str, Any]]:
        plugin = self.get(plugin_id)
        if plugin is None:
            return None
        plugin["enabled"] = enabled
        self.save()
        logger.info(f"{'Enabled' if enabled else 'Disabled'} plugin {plugin_id}")
        return plugin

    def enable(self, plugin_id: str) -> Optional[Dict[str, Any]]:
        return self._set_enabled(plugin_id, True)

    def disable(self, plugin_id: str) -> Optional[Dict[str, Any]]:
        return self._set_enabled(plugin_id, False)

    def is_disabled(self, plugin_id: str) -> bool:
        """True only when a plugin entry exists and is switched off"""
        plugin = self.get(plugin_id)
        return plugin is not None and not plugin.get("enabled", False)
