"""Request/response collaborators."""
from .client import ApiClient, classify_output, error_detail

__all__ = [
    "ApiClient",
    "classify_output",
    "error_detail",
]
