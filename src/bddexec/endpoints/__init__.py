"""Endpoint table and resolver."""
from .resolver import DEFAULT_ENDPOINTS, EndpointResolver, EndpointTable, stream_url

__all__ = [
    "DEFAULT_ENDPOINTS",
    "EndpointResolver",
    "EndpointTable",
    "stream_url",
]
