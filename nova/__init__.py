"""NOVA Connect: tool-routing chat backend for SaaS connectors."""

__version__ = "0.1.0"
