from __future__ import annotations

import logging

from flask import Flask, jsonify

from schoolportal import config
from schoolportal.routes import BLUEPRINTS

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.config["SESSION_COOKIE_NAME"] = config.SESSION_COOKIE_NAME
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

for blueprint in BLUEPRINTS:
    app.register_blueprint(blueprint)

logger = logging.getLogger(__name__)


@app.get("/api/health")
def health():
    return jsonify({"ok": True})


@app.errorhandler(404)
def not_found(_error):
    return jsonify({"error": "Not found."}), 404


@app.errorhandler(405)
def method_not_allowed(_error):
    return jsonify({"error": "Method not allowed."}), 405


@app.errorhandler(500)
def internal_error(error):
    logger.error("Unhandled server error: %s", error)
    return jsonify({"error": "Internal server error."}), 500


if __name__ == "__main__":
    app.run(debug=True)
