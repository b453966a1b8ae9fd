"""Root API blueprint.

Implements the root endpoint for version discovery.
"""

from __future__ import annotations

from flask import Blueprint, Response, jsonify

import fenceline

bp = Blueprint("root", __name__)


@bp.route("/", methods=["GET"])
def home() -> tuple[Response, int]:
    """Return version discovery information."""
    version_data = {
        "id": "v1",
        "version": fenceline.__version__,
        "status": "CURRENT",
        "links": [
            {
                "rel": "self",
                "href": "",
            }
        ],
    }

    resp = jsonify({"versions": [version_data]})
    resp.headers["cache-control"] = "no-cache"
    return resp, 200
