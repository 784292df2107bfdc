"""
In-memory record of provider connections.

Credentials live only in this process and are never written to disk.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .base import ConnectionResult

logger = logging.getLogger(__name__)


@dataclass
class ConnectionRecord:
    provider_id: str
    connected_at: datetime
    credential: Dict[str, Any] = field(repr=False)
    metadata: Dict[str, Any] = field(default_factory=dict)
    schema: Optional[Dict[str, Any]] = None


class ConnectionStore:
    """Latest successful connection per provider"""

    def __init__(self):
        self._connections: Dict[str, ConnectionRecord] = {}

    def record(self, result: ConnectionResult, schema: Optional[Dict[str, Any]] = None) -> ConnectionRecord:
        record = ConnectionRecord(
            provider_id=result.provider_id,
            connected_at=result.connected_at,
            credential=result.credential,
            metadata=dict(result.metadata),
            schema=schema,
        )
        self._connections[result.provider_id] = record
        logger.info(f"Stored connection for {result.provider_id}")
        return record

    def get(self, provider_id: str) -> Optional[ConnectionRecord]:
        return self._connections.get(provider_id)

    def credential(self, provider_id: str) -> Optional[Dict[str, Any]]:
        record = self._connections.get(provider_id)
        return record.credential if record else None

    def update_schema(self, provider_id: str, schema: Dict[str, Any]) -> None:
        record = self._connections.get(provider_id)
        if record is not None:
            record.schema = schema

    def remove(self, provider_id: str) -> bool:
        return self._connections.pop(provider_id, None) is not None

    def status(self, provider_id: str) -> Dict[str, Any]:
        """Connection status without the credential"""
        record = self._connections.get(provider_id)
        if record is None:
            return {"connected": False, "connected_at": None, "metadata": {}, "has_schema": False}
        return {
            "connected": True,
            "connected_at": record.connected_at,
            "metadata": record.metadata,
            "has_schema": record.schema is not None,
        }

    def __len__(self) -> int:
        return len(self._connections)
