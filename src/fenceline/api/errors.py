# SPDX-License-Identifier: Apache-2.0

"""Error handling for the Fenceline API.

Error responses use the format::

    {
        "errors": [
            {
                "status": <http_status_code>,
                "title": "<error_title>",
                "detail": "<error_detail>"
            }
        ]
    }

Core exceptions from :mod:`fenceline.exception` are translated to the
matching :class:`APIError` subclass by :func:`from_core`.
"""

from __future__ import annotations

import flask
from oslo_log import log

from fenceline import exception

LOG = log.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    status_code = 500
    title = "Internal Server Error"
    code = None

    def __init__(self, detail=None, code=None):
        """Initialize the API error.

        :param detail: Detailed error message
        :param code: Optional error code for programmatic handling
        """
        super(APIError, self).__init__(detail)
        self.detail = detail or self.title
        self.code = code or getattr(self, "code", None)

    def to_response(self):
        """Convert exception to a JSON response.

        :returns: Tuple of (JSON response, status code)
        """
        error = {
            "status": self.status_code,
            "title": self.title,
            "detail": self.detail,
        }
        if self.code:
            error["code"] = self.code

        body = {"errors": [error]}
        return flask.jsonify(body), self.status_code


class NotFound(APIError):
    """Resource not found (404)."""

    status_code = 404
    title = "Not Found"


class Conflict(APIError):
    """Resource conflict (409)."""

    status_code = 409
    title = "Conflict"


class BadRequest(APIError):
    """Invalid request (400)."""

    status_code = 400
    title = "Bad Request"


class NotAcceptable(APIError):
    """Not acceptable content type (406)."""

    status_code = 406
    title = "Not Acceptable"


class UnsupportedMediaType(APIError):
    """Unsupported media type (415)."""

    status_code = 415
    title = "Unsupported Media Type"


_CORE_MAP = (
    (exception.ValidationError, BadRequest, None),
    (exception.FormatError, BadRequest, "fenceline.bad_format"),
    (exception.NotFound, NotFound, None),
    (exception.PriorityConflict, Conflict, "fenceline.priority_conflict"),
    (exception.ConflictError, Conflict, None),
)


def from_core(exc: exception.FencelineException) -> APIError:
    """Translate a core exception into an API error."""
    for core_cls, api_cls, code in _CORE_MAP:
        if isinstance(exc, core_cls):
            return api_cls(exc.message, code=code)
    return APIError(exc.message)


def error_response(status, title, detail):
    """Create an error response.

    :param status: HTTP status code
    :param title: Short error title
    :param detail: Detailed error message
    :returns: Tuple of (JSON response, status code)
    """
    body = {
        "errors": [
            {
                "status": status,
                "title": title,
                "detail": detail,
            }
        ]
    }
    return flask.jsonify(body), status


def register_handlers(app):
    """Register error handlers for HTTP errors and Fenceline exceptions.

    :param app: Flask application instance
    """

    @app.errorhandler(APIError)
    def handle_api_error(error):
        """Handle APIError subclasses."""
        return error.to_response()

    @app.errorhandler(exception.FencelineException)
    def handle_core_error(error):
        api_error = from_core(error)
        req_id = flask.g.get("request_id")
        if api_error.status_code >= 500:
            LOG.error("[%s] Unexpected error: %s", req_id, error.message)
        else:
            LOG.warning("[%s] %s: %s", req_id, api_error.title, error.message)
        return api_error.to_response()

    @app.errorhandler(404)
    def not_found(error):
        return error_response(404, "Not Found", "The resource could not be found.")

    @app.errorhandler(400)
    def bad_request(error):
        return error_response(400, "Bad Request", "The request is invalid.")

    @app.errorhandler(405)
    def method_not_allowed(error):
        method = flask.request.method
        resp, status = error_response(
            405, "Method Not Allowed",
            "The method %s is not allowed for this resource." % method
        )
        if hasattr(error, "valid_methods") and error.valid_methods:
            resp.headers["Allow"] = ", ".join(sorted(error.valid_methods))
        return resp, status

    @app.errorhandler(406)
    def not_acceptable(error):
        return error_response(
            406, "Not Acceptable", "Only application/json is provided"
        )

    @app.errorhandler(415)
    def unsupported_media_type(error):
        content_type = flask.request.content_type
        return error_response(
            415, "Unsupported Media Type",
            "The media type %s is not supported, use application/json"
            % content_type
        )

    @app.errorhandler(500)
    def internal_error(error):
        return error_response(
            500, "Internal Server Error", "An unexpected error occurred."
        )
