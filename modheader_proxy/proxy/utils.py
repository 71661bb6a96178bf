"""Utility functions for the proxy server."""

from typing import Iterable, List, MutableMapping, Optional, Tuple, TypeVar

import httpx

from modheader_proxy.rules.models import MutationSet

# Stored lowercase as bytes for comparison against raw header names
HOP_BY_HOP_HEADERS = {
    b"connection",
    b"keep-alive",
    b"proxy-authenticate",
    b"proxy-authorization",
    b"te",
    b"trailer",
    b"trailers",
    b"transfer-encoding",
    b"upgrade",
}

HeadersT = TypeVar("HeadersT", bound=MutableMapping[str, str])


def filter_headers(
    raw_headers: Iterable[Tuple[bytes, bytes]], extra_excluded: Optional[Iterable[bytes]] = None
) -> httpx.Headers:
    """Copies raw (name, value) pairs into httpx Headers, dropping hop-by-hop headers.

    Duplicate names (e.g. several `set-cookie` lines) are preserved.

    Args:
        raw_headers: Header pairs as bytes, e.g. Starlette's `request.headers.raw`.
        extra_excluded: Further lowercase header names to drop.
    """
    excluded = HOP_BY_HOP_HEADERS | set(extra_excluded or ())
    kept: List[Tuple[bytes, bytes]] = [(name, value) for name, value in raw_headers if name.lower() not in excluded]
    return httpx.Headers(kept)


def apply_mutation_set(headers: HeadersT, mutation_set: MutationSet) -> HeadersT:
    """Applies a mutation set to a live, case-insensitive header mapping.

    Add and modify entries are set first, then every remove name is deleted. Removal
    of a header that is not present is a no-op, so repeated names are harmless.

    Args:
        headers: A mutable case-insensitive mapping such as `httpx.Headers` or
            Starlette `MutableHeaders`. Modified in place.
        mutation_set: The mutations computed for this message.

    Returns:
        The same `headers` object.
    """
    for name, value in mutation_set.to_add.items():
        headers[name] = value
    # presence was checked when the set was computed
    for name, value in mutation_set.to_modify.items():
        headers[name] = value
    for name in mutation_set.to_remove:
        if name in headers:
            del headers[name]
    return headers


def build_upstream_url(target_url: str, path: str) -> str:
    """Joins the configured target URL with the path of the incoming request."""
    return f"{target_url.rstrip('/')}/{path.lstrip('/')}"


def to_raw_headers(headers: httpx.Headers) -> List[Tuple[bytes, bytes]]:
    """Encodes headers as the (name, value) byte pairs an ASGI response carries."""
    return [(name.lower(), value) for name, value in headers.raw]
