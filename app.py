from urllib.parse import urlparse

from flask import Flask, jsonify, request

import app_context
from routes.pages import pages_bp
from routes.webauthn import webauthn_bp

app = Flask(__name__)
app.secret_key = app_context.SECRET_KEY
app.config["SESSION_COOKIE_SECURE"] = urlparse(app_context.ORIGIN).scheme == "https"
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["SESSION_COOKIE_SAMESITE"] = "Strict"
app.config["RATE_LIMIT_PER_MINUTE"] = app_context.RATE_LIMIT_PER_MINUTE

# ==========================================
# Logging middleware
# ==========================================


@app.before_request
def log_request_info():
    if app_context.LOG_REQUESTS:
        print(f"--> {request.method} {request.path} from {request.remote_addr}")


@app.after_request
def log_response_info(response):
    if app_context.LOG_REQUESTS:
        print(f"<-- {response.status_code} {request.method} {request.path}")
    return response


# ==========================================
# Error handlers
# ==========================================


@app.errorhandler(404)
def not_found(_error):
    return jsonify({"status": "failed", "message": "Not found"}), 404


@app.errorhandler(405)
def method_not_allowed(_error):
    return jsonify({"status": "failed", "message": "Method not allowed"}), 405


app.register_blueprint(pages_bp)
app.register_blueprint(webauthn_bp, url_prefix=app_context.MOUNT_PATH)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app_context.PORT, debug=True)
