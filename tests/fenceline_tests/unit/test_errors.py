# SPDX-License-Identifier: Apache-2.0

"""Unit tests for the Fenceline errors modules."""

from oslotest import base

from fenceline import exception
from fenceline.api import app
from fenceline.api import errors


class TestFencelineException(base.BaseTestCase):
    """Tests for core exception formatting."""

    def test_format_with_kwargs(self):
        exc = exception.RuleNotFound(rule_id=12)
        self.assertEqual("Rule not found: 12", exc.message)
        self.assertEqual({"rule_id": 12}, exc.kwargs)

    def test_literal_message(self):
        exc = exception.ValidationError("plain text")
        self.assertEqual("plain text", str(exc))

    def test_missing_kwargs_falls_back_to_template(self):
        exc = exception.PriorityConflict()
        self.assertEqual(exception.PriorityConflict.msg_fmt, exc.message)

    def test_families(self):
        self.assertIsInstance(exception.InvalidPosition(reason="x"),
                              exception.ValidationError)
        self.assertIsInstance(exception.InvalidWKT(reason="x"),
                              exception.FormatError)
        self.assertIsInstance(exception.InstanceInUse(instance=1, count=2),
                              exception.ConflictError)


class TestFromCore(base.BaseTestCase):
    """Tests for mapping core exceptions to API errors."""

    def test_validation(self):
        api_error = errors.from_core(exception.MissingGrant())
        self.assertIsInstance(api_error, errors.BadRequest)
        self.assertEqual("Missing grant type", api_error.detail)

    def test_format(self):
        api_error = errors.from_core(exception.InvalidWKT(reason="junk"))
        self.assertEqual(400, api_error.status_code)
        self.assertEqual("fenceline.bad_format", api_error.code)

    def test_not_found(self):
        api_error = errors.from_core(exception.RuleNotFound(rule_id=1))
        self.assertEqual(404, api_error.status_code)

    def test_priority_conflict(self):
        api_error = errors.from_core(exception.PriorityConflict(priority=1))
        self.assertEqual(409, api_error.status_code)
        self.assertEqual("fenceline.priority_conflict", api_error.code)

    def test_other_conflict(self):
        api_error = errors.from_core(exception.InstanceExists(name="gs1"))
        self.assertEqual(409, api_error.status_code)
        self.assertIsNone(api_error.code)

    def test_unknown(self):
        api_error = errors.from_core(exception.FencelineException())
        self.assertEqual(500, api_error.status_code)


class TestExceptionToResponse(base.BaseTestCase):
    """Tests for exception to_response method."""

    def setUp(self):
        super().setUp()
        self.flask_app = app.create_app({"TESTING": True, "SKIP_DB_INIT": True})

    def test_to_response_format(self):
        with self.flask_app.app_context():
            response, status = errors.NotFound("Rule 3 not found").to_response()

            self.assertEqual(404, status)
            data = response.get_json()
            self.assertEqual(1, len(data["errors"]))
            self.assertEqual(404, data["errors"][0]["status"])
            self.assertEqual("Not Found", data["errors"][0]["title"])
            self.assertEqual("Rule 3 not found", data["errors"][0]["detail"])
            self.assertNotIn("code", data["errors"][0])

    def test_to_response_with_code(self):
        with self.flask_app.app_context():
            exc = errors.Conflict("taken", code="fenceline.priority_conflict")
            response, _ = exc.to_response()

            data = response.get_json()
            self.assertEqual("fenceline.priority_conflict",
                             data["errors"][0]["code"])

    def test_error_response_format(self):
        with self.flask_app.app_context():
            response, status = errors.error_response(
                422, "Unprocessable", "Cannot process request"
            )

            self.assertEqual(422, status)
            data = response.get_json()
            self.assertEqual("Unprocessable", data["errors"][0]["title"])
