import logging

from flask import Flask

from fieldvault.config import EncryptionSettings
from fieldvault.routes.users import register_user_routes

# Logging setup
logging.basicConfig(level=logging.INFO, format="%(asctime)s:%(levelname)s:%(message)s")


def init_app(app: Flask, settings: EncryptionSettings) -> None:
    register_user_routes(app, settings)

    @app.route("/health.json")
    def health() -> dict[str, str]:
        return {"status": "ok"}
