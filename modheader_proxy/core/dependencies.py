import logging

import httpx
from fastapi import Depends, HTTPException, Request, status

from modheader_proxy.core.dependency_container import DependencyContainer
from modheader_proxy.rules.store import RuleStore
from modheader_proxy.settings import Settings

logger = logging.getLogger(__name__)

# --- Dependency Providers --- #


def get_dependencies(request: Request) -> DependencyContainer:
    """Dependency to retrieve the DependencyContainer from application state."""
    dependencies: DependencyContainer | None = getattr(request.app.state, "dependencies", None)
    if dependencies is None:
        logger.critical(
            "DependencyContainer not found in application state. "
            "This indicates a critical setup error in the application lifespan."
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error: Application dependencies not initialized.",
        )
    return dependencies


def get_rule_store(dependencies: DependencyContainer = Depends(get_dependencies)) -> RuleStore:
    return dependencies.rule_store


async def initialize_app_dependencies(app_settings: Settings) -> DependencyContainer:
    """Initialize and configure core application dependencies.

    Creates the HTTP client used to reach the target and an empty rule store, and
    wraps them in a DependencyContainer.

    Args:
        app_settings: The application settings instance.

    Returns:
        A DependencyContainer instance populated with initialized dependencies.

    Raises:
        RuntimeError: If the settings are invalid or the container cannot be built.
    """
    logger.info("Initializing core application dependencies...")

    try:
        target_url = app_settings.get_target_url()
        read_timeout = app_settings.get_upstream_timeout()
    except ValueError as config_exc:
        logger.critical(f"Invalid proxy configuration: {config_exc}")
        raise RuntimeError(f"Invalid proxy configuration: {config_exc}") from config_exc

    timeout = httpx.Timeout(5.0, connect=5.0, read=read_timeout, write=5.0)
    http_client = httpx.AsyncClient(timeout=timeout)
    logger.info(f"HTTP Client initialized for DependencyContainer, forwarding to {target_url}.")

    try:
        dependencies = DependencyContainer(
            settings=app_settings,
            http_client=http_client,
            rule_store=RuleStore(),
        )
        logger.info("Dependency Container created successfully.")
        return dependencies
    except Exception as container_exc:
        logger.critical(f"Failed to create Dependency Container instance: {container_exc}", exc_info=True)
        await http_client.aclose()
        logger.info("HTTP client closed due to Dependency Container instantiation failure.")
        raise RuntimeError(f"Failed to create Dependency Container instance: {container_exc}") from container_exc
