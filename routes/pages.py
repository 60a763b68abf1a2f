from flask import Blueprint, jsonify, session

from routes.webauthn import webauthn
from web_utils import rate_limit

pages_bp = Blueprint("pages", __name__)


@pages_bp.route("/")
def index():
    return jsonify({"status": "healthy", "service": "WebAuthn Authentication Router"}), 200


@pages_bp.route("/profile")
@rate_limit()
@webauthn.authenticate()
def profile():
    user = webauthn.current_user()
    if not user:
        session.clear()
        return jsonify({"status": "failed", "message": "Unauthorized"}), 401

    return jsonify(
        {
            "status": "ok",
            "username": user.get(webauthn.username_field),
            "authenticators": len(user.get("authenticators", [])),
        }
    )
