"""
Entry points: the relay server and the console client.
"""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from relaychat import console
from relaychat.config import Configuration
from relaychat.llm.exceptions import ConfigurationError
from relaychat.logging_utils import configure_logging
from relaychat.relay_server import create_app


async def serve(config: Configuration) -> None:
    """Run the relay until uvicorn receives a shutdown signal."""
    # Credential is read once here and handed to the relay by reference
    provider = config.get_provider_config()
    relay_config = config.get_relay_config()
    uvicorn_options = relay_config["uvicorn"]

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(provider),
            host=relay_config["host"],
            port=relay_config["port"],
            log_level=uvicorn_options.get("log_level", "info"),
            access_log=uvicorn_options.get("access_log", True),
        )
    )
    await server.serve()


def main() -> None:
    """Relay server entry point."""
    config = Configuration()
    configure_logging(config.get_logging_config().get("level", "INFO"))
    try:
        asyncio.run(serve(config))
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        raise SystemExit(1) from e
    except KeyboardInterrupt:
        logging.info("Keyboard interrupt received, shutting down...")


def console_main() -> None:
    """Console client entry point."""
    config = Configuration()
    # Keep log lines out of the transcript
    configure_logging("WARNING")
    try:
        asyncio.run(console.run(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
