"""
Main entry point for running the ModHeader proxy server.
"""

import uvicorn

from modheader_proxy.settings import Settings


def main():
    """Run the proxy server."""
    settings = Settings()
    uvicorn.run(
        "modheader_proxy.main:app",
        host=settings.get_app_host(),
        port=settings.get_app_port(),
        log_level=settings.get_log_level().lower(),
    )


if __name__ == "__main__":
    main()
