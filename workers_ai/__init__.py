"""
Cloudflare Workers AI client: model discovery and chat completions over
the direct API or AI Gateway.
"""

from .client import WorkersAIClient
from .config import ClientOptions
from .endpoints import Operation, Topology, resolve_endpoint
from .errors import (
    Cancelled,
    ConfigurationError,
    ProtocolFailure,
    StreamFailure,
    TransportFailure,
    WorkersAIError,
)

__all__ = [
    "WorkersAIClient",
    "ClientOptions",
    "Operation",
    "Topology",
    "resolve_endpoint",
    "WorkersAIError",
    "ConfigurationError",
    "TransportFailure",
    "ProtocolFailure",
    "StreamFailure",
    "Cancelled",
]
