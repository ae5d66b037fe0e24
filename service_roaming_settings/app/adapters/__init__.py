"""
Adapters package for the roaming settings store.

Contains the HTTP client wrapper for Microsoft Graph user open extensions.
The adapter encapsulates:

- Base URL and request shapes
- Retry policy and circuit breaker
- Error handling that maps to the store's errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .graph_client import GraphExtensionsClient, ExtensionDocument

__all__ = [
    "GraphExtensionsClient",
    "ExtensionDocument",
]
