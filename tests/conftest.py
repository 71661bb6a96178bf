import json
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI

from modheader_proxy.api.router import router as rules_router
from modheader_proxy.core.dependency_container import DependencyContainer
from modheader_proxy.proxy.server import router as proxy_router
from modheader_proxy.rules.engine import HeaderRuleEngine
from modheader_proxy.rules.store import RuleStore
from modheader_proxy.settings import Settings

TEST_TARGET_URL = "http://upstream.test"


async def streamed_body(body: bytes):
    """Yields a fake upstream body so httpx leaves the response stream unread, like a real transport."""
    yield body


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """AUTOUSE: Keeps configuration from the developer's shell or .env out of the tests."""
    for env_var in ["TARGET_URL", "HOST", "PORT", "RELOAD", "LOG_LEVEL", "UPSTREAM_TIMEOUT", "LOKI_URL"]:
        monkeypatch.delenv(env_var, raising=False)
    yield


@pytest.fixture
def rule_store() -> RuleStore:
    return RuleStore()


@pytest.fixture
def header_engine(rule_store: RuleStore) -> HeaderRuleEngine:
    return HeaderRuleEngine(rule_store)


@pytest.fixture
def mock_settings() -> MagicMock:
    """Provides a mock Settings instance."""
    settings = MagicMock(spec=Settings)
    settings.get_target_url.return_value = TEST_TARGET_URL
    settings.get_upstream_timeout.return_value = 60.0
    return settings


@pytest.fixture
def mock_http_client() -> AsyncMock:
    """Provides a mock httpx.AsyncClient instance."""
    client = AsyncMock(spec=httpx.AsyncClient)
    return client


@pytest.fixture
def mock_container(mock_settings: MagicMock, mock_http_client: AsyncMock, rule_store: RuleStore) -> MagicMock:
    """Provides a mock DependencyContainer around a real rule store."""
    container = MagicMock(spec=DependencyContainer)
    container.settings = mock_settings
    container.http_client = mock_http_client
    container.rule_store = rule_store
    container.header_engine = HeaderRuleEngine(rule_store)
    return container


@pytest.fixture
def upstream_calls() -> list:
    """Requests received by the fake upstream, in order."""
    return []


@pytest.fixture
def upstream_handler(upstream_calls: list) -> Callable[[httpx.Request], httpx.Response]:
    """Default fake upstream: echoes back what it received. Override per test module if needed."""

    def handler(request: httpx.Request) -> httpx.Response:
        upstream_calls.append(request)
        return httpx.Response(
            200,
            headers=[("content-type", "application/json"), ("x-upstream", "yes")],
            content=streamed_body(
                json.dumps(
                    {"method": request.method, "path": request.url.path, "query": str(request.url.query, "ascii")}
                ).encode()
            ),
        )

    return handler


@pytest.fixture
def proxy_app(mock_settings: MagicMock, rule_store: RuleStore, upstream_handler) -> FastAPI:
    """An app wired like `modheader_proxy.main.app`, forwarding to a fake upstream."""
    app = FastAPI()
    app.include_router(rules_router)
    app.include_router(proxy_router)
    app.state.dependencies = DependencyContainer(
        settings=mock_settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream_handler)),
        rule_store=rule_store,
    )
    return app
