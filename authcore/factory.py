"""Application factory wiring Flask extensions, the auth API and the CLI."""

from __future__ import annotations

from flask import Flask

from authcore.core.config import BaseConfig, get_config, validate_config
from authcore.core.logger import configure_logging, init_app as init_logging


def create_app(config: str | type[BaseConfig] | object | None = None) -> Flask:
    """Build and configure the Flask application.

    Parameters
    ----------
    config: str | type | object | None
        Import path or object accepted by :meth:`flask.Config.from_object`.
        Defaults to the class selected by ``APP_ENV``.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(get_config() if config is None else config)
    app.config.from_pyfile("config.py", silent=True)
    validate_config(app.config)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from authcore.core import cors, errors, extensions, proxy

    proxy.init_app(app)
    extensions.init_app(app)
    init_logging(app)
    cors.init_app(app)

    from authcore.api import init_app as init_api

    init_api(app)
    errors.init_app(app)

    from authcore import cli

    cli.init_app(app)

    return app
