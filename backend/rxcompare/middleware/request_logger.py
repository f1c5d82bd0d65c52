"""
Request logger – before/after-request hooks that write one log line per
API call: method, path, status, elapsed time and a redacted request body.
"""

import json
import logging
import time

from flask import g, request

logger = logging.getLogger("rxcompare.requests")

REDACTED_FIELDS = ("password", "token", "client_secret", "clientSecret", "access_token")
MAX_BODY_CHARS = 500


def start_request_timer():
    g.request_started = time.monotonic()


def log_after_request(response):
    """Log every API request/response pair."""
    if not request.path.startswith("/api/"):
        return response

    # Skip health checks from filling the log
    if request.path == "/api/health":
        return response

    try:
        started = getattr(g, "request_started", None)
        elapsed_ms = (time.monotonic() - started) * 1000 if started is not None else 0.0

        req_body = None
        if request.is_json:
            body = request.get_json(silent=True)
            if isinstance(body, dict):
                body = {k: ("***" if k in REDACTED_FIELDS else v) for k, v in body.items()}
            req_body = json.dumps(body, default=str)[:MAX_BODY_CHARS]

        used_mock = None
        if response.is_json:
            data = response.get_json(silent=True)
            if isinstance(data, dict):
                used_mock = data.get("usedMockData", data.get("isMockData"))

        logger.info(
            "%s %s -> %s in %.0fms%s%s",
            request.method,
            request.full_path.rstrip("?"),
            response.status_code,
            elapsed_ms,
            f" mock={used_mock}" if used_mock is not None else "",
            f" body={req_body}" if req_body else "",
        )
    except Exception as exc:
        logger.warning("Request logging failed: %s", exc)

    return response
