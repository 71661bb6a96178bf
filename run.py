"""
Script to run the ModHeader proxy server with hot reload.
"""

import os
from pathlib import Path

import uvicorn


def main():
    """Run the server with hot reload enabled."""
    env_path = Path(__file__).parent / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(env_path)

    host = os.getenv("HOST", "localhost")
    port = int(os.getenv("PORT", "8080"))
    reload = os.getenv("RELOAD", "true").lower() == "true"

    uvicorn.run(
        "modheader_proxy.main:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["modheader_proxy"],  # Only watch our package directory
        log_level="debug",
    )


if __name__ == "__main__":
    main()
