import os
from aiohttp import web
import logging
from logging.config import dictConfig
import json

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False):
    """
    Configure logging from the JSON dictConfig named by LOGGING_CONFIG_FILE.

    Without a config file, the gateway logs at INFO, or DEBUG with the debug setting. The
    aiohttp access log stays at INFO either way: per-request detail is already logged by
    the pipeline.
    """
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return

    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger("aiohttp.access").setLevel(logging.INFO)


def invoke():
    from dweb.brave.gateway.app.config import Settings
    from dweb.brave.gateway.app.server import start_web_server

    settings = Settings()  # type: ignore
    configure_logging(settings.debug)

    web.run_app(start_web_server(settings), port=settings.http_port)


if __name__ == "__main__":
    invoke()
