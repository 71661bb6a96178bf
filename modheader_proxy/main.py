import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Depends, FastAPI

from modheader_proxy.api.router import router as rules_router
from modheader_proxy.core.dependencies import get_rule_store, initialize_app_dependencies
from modheader_proxy.core.logging import setup_logging
from modheader_proxy.proxy.server import router as proxy_router
from modheader_proxy.rules.store import RuleStore
from modheader_proxy.settings import Settings

setup_logging()


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifespan of the application resources.

    Initializes the dependency container on startup and closes the shared HTTP
    client on shutdown. Rules live only as long as the process.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: After startup procedures are complete, allowing the application to run.

    Raises:
        RuntimeError: If critical application dependencies fail to initialize during startup.
    """
    logger.info("Application startup sequence initiated.")

    app_settings = Settings()
    logger.info("Settings loaded.")

    try:
        initialized_dependencies = await initialize_app_dependencies(app_settings)
    except Exception as init_exc:
        logger.critical(f"Fatal error during application dependency initialization: {init_exc}", exc_info=True)
        raise RuntimeError(
            f"Application startup failed due to dependency initialization error: {init_exc}"
        ) from init_exc

    app.state.dependencies = initialized_dependencies
    logger.info(f"ModHeader proxy ready, forwarding to {app_settings.get_target_url()}")

    yield  # Application runs here

    logger.info("Application shutdown sequence initiated.")
    await initialized_dependencies.http_client.aclose()
    logger.info("HTTP Client from DependencyContainer closed.")
    logger.info("Application shutdown complete.")


app = FastAPI(
    title="ModHeader Proxy",
    description="A forwarding proxy that rewrites request and response headers from managed rules.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health", tags=["General"], status_code=200)
async def health_check(store: RuleStore = Depends(get_rule_store)):
    """Perform a basic health check.

    Returns:
        The application status, the current time and how many rules are loaded.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "rulesCount": store.count(),
    }


app.include_router(rules_router)
# Catch-all; must be registered last
app.include_router(proxy_router)


if __name__ == "__main__":
    import uvicorn

    dev_settings = Settings()
    uvicorn.run(
        "modheader_proxy.main:app",
        host=dev_settings.get_app_host(),
        port=dev_settings.get_app_port(),
        reload=dev_settings.get_app_reload(),
        log_level=dev_settings.get_log_level().lower(),
    )
