"""Connector adapters for external systems."""

from nova.connectors.base import ActionSpec, BaseConnector, action, normalize_action_name
from nova.connectors.registry import ConnectorRegistry

__all__ = [
    "ActionSpec",
    "BaseConnector",
    "ConnectorRegistry",
    "action",
    "normalize_action_name",
]
