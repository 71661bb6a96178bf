import logging

import httpx
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from modheader_proxy.core.dependencies import get_dependencies
from modheader_proxy.core.dependency_container import DependencyContainer
from modheader_proxy.core.logging import log_header_mutations
from modheader_proxy.proxy.utils import (
    apply_mutation_set,
    build_upstream_url,
    filter_headers,
    to_raw_headers,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PROXIED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

# Headers httpx derives from the target URL and the body it is given
DERIVED_REQUEST_HEADERS = ("host", "content-length")


async def build_upstream_request(request: Request, dependencies: DependencyContainer) -> httpx.Request:
    """
    Builds the request sent to the target, with request header rules applied.

    Rules are evaluated against the headers as the client sent them. The rewritten
    headers replace httpx's client defaults, so a removed header stays removed.
    """
    target_url = dependencies.settings.get_target_url()
    body = await request.body()
    upstream_request = dependencies.http_client.build_request(
        method=request.method,
        url=build_upstream_url(target_url, request.url.path),
        params=request.query_params.multi_items(),
        content=body,
    )

    outgoing = filter_headers(request.headers.raw, extra_excluded=[name.encode() for name in DERIVED_REQUEST_HEADERS])
    for name in DERIVED_REQUEST_HEADERS:
        if name in upstream_request.headers:
            outgoing[name] = upstream_request.headers[name]

    mutation_set = dependencies.header_engine.apply_to_request(request.headers)
    apply_mutation_set(outgoing, mutation_set)
    log_header_mutations("Request", request.method, request.url.path, mutation_set)

    upstream_request.headers = outgoing
    return upstream_request


def build_client_response(
    request: Request, upstream_response: httpx.Response, dependencies: DependencyContainer
) -> StreamingResponse:
    """Wraps the streamed upstream response, with response header rules applied."""
    headers = filter_headers(upstream_response.headers.raw)
    mutation_set = dependencies.header_engine.apply_to_response(upstream_response.headers)
    apply_mutation_set(headers, mutation_set)
    log_header_mutations("Response", request.method, request.url.path, mutation_set)

    response = StreamingResponse(
        upstream_response.aiter_raw(),
        status_code=upstream_response.status_code,
        background=BackgroundTask(upstream_response.aclose),
    )
    # Set raw pairs directly so repeated headers such as set-cookie survive
    response.raw_headers = to_raw_headers(headers)
    return response


@router.api_route("/{full_path:path}", methods=PROXIED_METHODS, include_in_schema=False)
async def proxy_endpoint(
    request: Request,
    full_path: str,
    dependencies: DependencyContainer = Depends(get_dependencies),
) -> Response:
    """
    Forwards any request not handled by another route to the configured target.

    Request header rules are applied before forwarding and response header rules
    before the response reaches the client. Upstream failures become a 502.
    """
    upstream_request = await build_upstream_request(request, dependencies)
    logger.info(f"Forwarding {request.method} /{full_path} to {upstream_request.url}")

    try:
        upstream_response = await dependencies.http_client.send(upstream_request, stream=True)
    except httpx.HTTPError as e:
        logger.error(f"Proxy error forwarding {request.method} /{full_path}: {e!r}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Proxy error", "message": str(e) or e.__class__.__name__},
        )

    logger.info(
        "Upstream response received",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": upstream_response.status_code,
        },
    )
    return build_client_response(request, upstream_response, dependencies)
