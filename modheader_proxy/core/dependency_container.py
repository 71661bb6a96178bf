# Dependency Injection Container.

import httpx

from modheader_proxy.rules.engine import HeaderRuleEngine
from modheader_proxy.rules.store import RuleStore
from modheader_proxy.settings import Settings


class DependencyContainer:
    """Holds shared dependencies for the application.

    The rule store is the only shared mutable state; the engine reads from it on
    every proxied message and the management API writes to it.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        rule_store: RuleStore,
        header_engine: HeaderRuleEngine | None = None,
    ) -> None:
        """
        Initializes the container.

        Args:
            settings: Application settings.
            http_client: Shared asynchronous HTTP client used to reach the target.
            rule_store: The process-wide rule store.
            header_engine: Engine reading `rule_store`. Built from it when omitted.
        """
        self.settings = settings
        self.http_client = http_client
        self.rule_store = rule_store
        self.header_engine = header_engine or HeaderRuleEngine(rule_store)
