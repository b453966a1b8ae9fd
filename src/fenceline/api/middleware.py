# SPDX-License-Identifier: Apache-2.0

"""Request hooks for the Fenceline API.

Requests get an id from oslo.middleware's ``RequestId``; the remaining
hooks enforce JSON content negotiation.
"""

from __future__ import annotations

from flask import abort, g, request
from oslo_middleware import request_id

from fenceline.api.errors import BadRequest


def _accepts_json() -> bool:
    """Check if the client accepts application/json.

    Handles standard Accept header parsing including wildcards.
    """
    accept = request.headers.get("Accept", "")
    if not accept:
        return True  # No Accept header means accept anything

    parts = accept.lower().split(",")
    for part in parts:
        media_type = part.split(";")[0].strip()
        if media_type in ("application/json", "*/*", "application/*"):
            return True
    return False


def register(app) -> None:
    """Wrap the WSGI app for request ids and register request hooks."""
    app.wsgi_app = request_id.RequestId(app.wsgi_app)

    @app.before_request
    def _set_request_id():
        g.request_id = request.environ.get(request_id.ENV_REQUEST_ID)

    @app.before_request
    def _check_accept():
        """Validate Accept header for JSON responses."""
        # Skip check for root endpoint
        if request.path == "/":
            return

        # Unknown routes are left to 404 naturally
        adapter = app.url_map.bind('')
        try:
            adapter.match(request.path, method=request.method)
        except Exception:
            return

        if not _accepts_json():
            abort(406)

    @app.before_request
    def _check_content_type():
        """Validate Content-Type header for requests with bodies."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.content_type or ""
            content_length = request.content_length

            if content_length and content_length > 0:
                if not content_type:
                    raise BadRequest("content-type header required when body is present")

                if not content_type.startswith("application/json"):
                    abort(415)
