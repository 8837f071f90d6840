import argparse
import json
import logging
import os
from logging.config import dictConfig
from typing import List, Optional

from aiohttp import web


def configure_logging(debug: bool = False) -> None:
    """
    Configure logging from LOGGING_CONFIG_FILE, a dictConfig JSON document.

    Without one, log to stderr at DEBUG when debugging and INFO otherwise.
    """
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)


def invoke(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(prog="wormhole", description="Run the Wormhole service")
    parser.add_argument("--port", type=int, help="Override the PORT setting.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    from social.graze.wormhole.app.config import Settings
    from social.graze.wormhole.app.server import start_web_server

    settings = Settings()  # type: ignore
    if args.debug:
        settings = settings.model_copy(update={"debug": True})

    configure_logging(settings.debug)

    web.run_app(start_web_server(settings), port=args.port or settings.http_port)


if __name__ == "__main__":
    invoke()
