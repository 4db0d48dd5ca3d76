import logging
from typing import Any, Mapping, Optional, Tuple

from flask import Flask
from werkzeug.exceptions import HTTPException, InternalServerError

from fieldvault import routes
from fieldvault.cli_keys import register_key_commands
from fieldvault.config import EncryptionSettings, load_config
from fieldvault.serialization import BSONJSONProvider


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.json = BSONJSONProvider(app)

    if app.config["DEBUG"] or app.config["TESTING"]:
        app.logger.setLevel(logging.DEBUG)
    else:
        logging.basicConfig(format="%(levelname)s:%(message)s")

    if not config:
        config = load_config()

    app.config.from_mapping(config)

    # built once here and handed to everything that talks to the database
    settings = EncryptionSettings.from_config(config)
    app.config["ENCRYPTION_SETTINGS"] = settings

    routes.init_app(app, settings)
    register_error_handlers(app)

    # Register custom CLI commands
    register_key_commands(app, settings)

    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException) -> Tuple[dict[str, Any], int]:
        return {"error": e.description}, (e.code or 500)

    # don't register this one in development. we want the debugger
    if app.config["DEBUG"] and not app.config["TESTING"]:
        return

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception) -> Tuple[dict[str, Any], int]:
        if isinstance(e, HTTPException):
            return handle_http_exception(e)

        app.logger.info(f"Unhandled error: {e}", exc_info=True)

        http_e = InternalServerError()
        return {"error": http_e.description}, http_e.code or 500
