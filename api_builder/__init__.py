"""
API Builder Server - back-end for a no-code API builder.

This package proxies third-party SaaS APIs through uniform connectors and
tracks request metrics for an evaluation dashboard.
"""

__version__ = "0.1.0"
__author__ = "API Builder Team"

from .config import BuilderConfig
from .monitoring import APIMonitoringService
from .connectors import ConnectorRegistry

__all__ = [
    "BuilderConfig",
    "APIMonitoringService",
    "ConnectorRegistry",
    "__version__",
]
