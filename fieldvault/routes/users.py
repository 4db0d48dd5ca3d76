from typing import Any, Tuple

from flask import Flask, current_app, request

from fieldvault.config import EncryptionSettings
from fieldvault.users import find_user_by_email, register_user


def register_user_routes(app: Flask, settings: EncryptionSettings) -> None:
    @app.route("/api/register", methods=["POST"])
    def register() -> Tuple[dict[str, Any], int]:
        try:
            user_id = register_user(settings, request.get_json(silent=True))
        except Exception as e:
            current_app.logger.error(f"Error registering user: {e}", exc_info=True)
            return {"error": str(e)}, 500

        return {"message": "User registered successfully", "userId": str(user_id)}, 200

    @app.route("/api/user/<email>")
    def user(email: str) -> Tuple[dict[str, Any], int]:
        try:
            found = find_user_by_email(settings, email)
        except Exception as e:
            current_app.logger.error(f"Error fetching user: {e}", exc_info=True)
            return {"error": str(e)}, 500

        if found is None:
            return {"message": "User not found"}, 404
        return found, 200
