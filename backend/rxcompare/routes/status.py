"""
Status routes – diagnostics for operators.
"""

from flask import Blueprint, current_app, jsonify

status_bp = Blueprint("status", __name__)


@status_bp.route("/token", methods=["GET"])
def token_status():
    """Credential cache state. The token value itself is never returned."""
    services = current_app.extensions["rxcompare"]
    payload = services["credentials"].status()
    payload["useMockData"] = services["engine"].use_mock_data
    return jsonify(payload), 200
