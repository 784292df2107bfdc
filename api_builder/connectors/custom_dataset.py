"""
Custom JSON dataset "connector": no remote provider, just schema inference.
"""

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Union

from .base import ConnectionResult, Connector
from .errors import ConnectorError, MissingCredentialsError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^https?://")

SUPPORTED_FORMATS = [
    'Array of objects: [{"name": "John", "age": 30}]',
    'Single object: {"name": "John", "age": 30}',
    'Nested objects: {"user": {"name": "John", "profile": {"age": 30}}}',
]


class DatasetParseError(ConnectorError):
    def __init__(self, message: str):
        super().__init__(message, "custom-dataset")
        self.supported_formats = list(SUPPORTED_FORMATS)


def infer_field_type(value: Any) -> str:
    if value is None:
        return "text"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, str):
        if DATE_PATTERN.match(value):
            return "date"
        if EMAIL_PATTERN.match(value):
            return "email"
        if URL_PATTERN.match(value):
            return "url"
    return "text"


def infer_schema(data: Union[str, bytes, List[Any], Dict[str, Any]]) -> Dict[str, Any]:
    """
    Infer a field schema from a JSON dataset.

    Args:
        data: JSON text, or an already decoded array of objects or single object

    Returns:
        Dataset name, record count, fields and up to three sample records
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise DatasetParseError(f"Failed to parse JSON data: {e.msg}") from e

    if isinstance(data, list):
        records = data
        sample = data[0] if data else {}
    elif isinstance(data, dict):
        records = [data]
        sample = data
    else:
        raise DatasetParseError("Dataset must be a JSON array of objects or a JSON object")

    if not isinstance(sample, dict):
        raise DatasetParseError("Dataset records must be JSON objects")

    fields = [
        {
            "name": name,
            "type": infer_field_type(value),
            "required": value is not None,
            "sample": value,
        }
        for name, value in sample.items()
    ]

    return {
        "name": "Custom Dataset",
        "record_count": len(records),
        "fields": fields,
        "sample_data": records[:3],
    }


class CustomDatasetConnector(Connector):

    def get_auth_url(self, state: Optional[str] = None) -> str:
        return self.frontend_redirect("setup")

    async def handle_callback(self, params: Mapping[str, str]) -> ConnectionResult:
        credential = {}
        metadata = {}
        if params.get("sample_data"):
            credential["data"] = params["sample_data"]
            metadata["record_count"] = infer_schema(params["sample_data"])["record_count"]
        return ConnectionResult(provider_id=self.provider_id, credential=credential, metadata=metadata)

    async def get_schema(self, credential: Dict[str, Any]) -> Dict[str, Any]:
        data = (credential or {}).get("data")
        if data is None:
            raise MissingCredentialsError(
                "No dataset uploaded; POST it to /api/connectors/custom-dataset/schema",
                self.provider_id,
            )
        return infer_schema(data)
