"""Provider connectors for the Brand War Room"""

from app.connectors.base_connector import BaseConnector, MalformedResponse, ProviderError
from app.connectors.registry import ConnectorRegistry

__all__ = [
    "BaseConnector",
    "ConnectorRegistry",
    "MalformedResponse",
    "ProviderError",
]
