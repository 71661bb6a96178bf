import os
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

# Load .env file variables into environment
load_dotenv(verbose=True)

DEFAULT_TARGET_URL = "http://localhost:3000"


class Settings:
    """Application configuration settings loaded from environment variables."""

    # --- Core Settings ---
    TARGET_URL: Optional[str] = None

    # --- Server Settings ---
    HOST: str = "localhost"
    PORT: int = 8080

    # --- Helper Methods using os.getenv ---
    def get_target_url(self) -> str:
        """Returns the upstream origin every proxied request is forwarded to."""
        url = os.getenv("TARGET_URL", DEFAULT_TARGET_URL)
        parsed = urlparse(url)
        if not all([parsed.scheme, parsed.netloc]):
            raise ValueError(f"Invalid TARGET_URL format: {url}")
        return url

    def get_upstream_timeout(self) -> float:
        """Returns the read timeout, in seconds, for upstream responses."""
        timeout_str = os.getenv("UPSTREAM_TIMEOUT", "60")
        try:
            return float(timeout_str)
        except ValueError:
            raise ValueError("UPSTREAM_TIMEOUT environment variable must be a number.")

    # --- Server Getters ---
    def get_app_host(self, default: str = "localhost") -> str:
        return os.getenv("HOST", default)

    def get_app_port(self, default: int = 8080) -> int:
        """Returns the port the proxy listens on."""
        port_str = os.getenv("PORT")
        if port_str is None:
            return default
        try:
            return int(port_str)
        except ValueError:
            raise ValueError("PORT environment variable must be an integer.")

    def get_app_reload(self, default: bool = False) -> bool:
        """Returns whether uvicorn should run with auto-reload."""
        reload_str = os.getenv("RELOAD")
        if reload_str is None:
            return default
        if reload_str.lower() not in ("true", "false"):
            raise ValueError("RELOAD environment variable must be 'true' or 'false'.")
        return reload_str.lower() == "true"

    # --- Logging Settings ---
    def get_log_level(self, default: str = "INFO") -> str:
        """Gets the configured log level, defaulting if not set."""
        return os.getenv("LOG_LEVEL", default).upper()

    def get_loki_url(self) -> Optional[str]:
        return os.getenv("LOKI_URL")
