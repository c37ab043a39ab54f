"""
Endpoint resolution for the two Workers AI deployment shapes.

Direct:   https://api.cloudflare.com/client/v4/accounts/{account}/ai[/v1]
Gateway:  https://gateway.ai.cloudflare.com/v1/{account}/{gateway}[/...]

Both are rewritten to a canonical prefix, then suffixed per operation:

    resolve_endpoint(base, Operation.RUN)            -> .../ai/run
    resolve_endpoint(base, Operation.MODELS_SEARCH)  -> .../ai/models/search

Resolution is pure: no network I/O, same input gives the same output.
"""

from enum import Enum
from typing import Optional

import httpx

from workers_ai.config import (
    DIRECT_HOSTNAME,
    GATEWAY_HOSTNAME,
    GATEWAY_SERVICE_SEGMENT,
)
from workers_ai.errors import ConfigurationError


class Topology(str, Enum):
    """URL-shape convention a base address follows."""
    DIRECT = "direct"
    GATEWAY = "gateway"
    UNSUPPORTED = "unsupported"


class Operation(str, Enum):
    RUN = "run"
    MODELS_SEARCH = "models-search"


_OPERATION_SUFFIX = {
    Operation.RUN: "/run",
    Operation.MODELS_SEARCH: "/models/search",
}

# Number of "/"-split path segments kept, including the leading empty one.
# Direct:  ["", "client", "v4", "accounts", "{account}", "ai"]
# Gateway: ["", "v1", "{account}", "{gateway}"]
_DIRECT_DEPTH = 6
_GATEWAY_DEPTH = 4


def parse_base_url(base_url: str) -> httpx.URL:
    """
    Parse a base address into an absolute URL.

    Raises:
        ConfigurationError: If the address is malformed or not absolute
    """
    try:
        url = httpx.URL(base_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"Invalid Workers AI base URL {base_url!r}: {e}") from e
    if not url.is_absolute_url or not url.host:
        raise ConfigurationError(
            f"Invalid Workers AI base URL {base_url!r}: must be an absolute URL"
        )
    return url


def detect_topology(url: httpx.URL) -> Topology:
    """Select the topology from the hostname alone."""
    host = url.host.lower()
    if host == DIRECT_HOSTNAME:
        return Topology.DIRECT
    if host == GATEWAY_HOSTNAME:
        return Topology.GATEWAY
    return Topology.UNSUPPORTED


def _direct_path(path: str) -> str:
    return "/".join(path.split("/")[:_DIRECT_DEPTH])


def _gateway_path(path: str) -> str:
    segments = path.split("/")[:_GATEWAY_DEPTH]
    segments.append(GATEWAY_SERVICE_SEGMENT)
    return "/".join(segments)


_PATH_RULES = {
    Topology.DIRECT: _direct_path,
    Topology.GATEWAY: _gateway_path,
}


def resolve_endpoint(base_url: str, operation: Operation) -> Optional[str]:
    """
    Full request address for an operation.

    Args:
        base_url: User-configured base address
        operation: Operation.RUN or Operation.MODELS_SEARCH

    Returns:
        The address, or None when the topology is unsupported.

    Raises:
        ConfigurationError: If the address is malformed
    """
    url = parse_base_url(base_url)
    rule = _PATH_RULES.get(detect_topology(url))
    if rule is None:
        return None
    path = rule(url.path).rstrip("/") + _OPERATION_SUFFIX[Operation(operation)]
    return str(url.copy_with(path=path))
