# SPDX-License-Identifier: Apache-2.0

"""Core exceptions raised by the rule administration engine.

These carry no transport information. The REST layer maps each family to
an HTTP status in :mod:`fenceline.api.errors`.
"""

from __future__ import annotations

from typing import Any

from oslo_log import log as logging

LOG = logging.getLogger(__name__)


class FencelineException(Exception):
    """Base exception.

    Subclasses define a ``msg_fmt`` that is interpolated with the keyword
    arguments given to the constructor. A literal message may be passed
    instead as the first positional argument.
    """

    msg_fmt = "An unknown exception occurred."

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        self.kwargs = kwargs
        if not message:
            try:
                message = self.msg_fmt % kwargs
            except (KeyError, TypeError):
                LOG.exception("Exception in string format operation")
                for name, value in kwargs.items():
                    LOG.error("%s: %s", name, value)
                message = self.msg_fmt
        self.message = message
        super().__init__(message)


class ValidationError(FencelineException):
    msg_fmt = "Invalid input: %(reason)s"


class InvalidPosition(ValidationError):
    msg_fmt = "Bad position: %(reason)s"


class MissingGrant(ValidationError):
    msg_fmt = "Missing grant type"


class AmbiguousFilter(ValidationError):
    msg_fmt = (
        "Id and name can't be both defined (id:%(id)s name:%(name)s)"
    )


class ImmutableField(ValidationError):
    msg_fmt = "%(field)s can't be updated"


class NotFound(FencelineException):
    msg_fmt = "Resource could not be found."


class RuleNotFound(NotFound):
    msg_fmt = "Rule not found: %(rule_id)s"


class InstanceNotFound(NotFound):
    msg_fmt = "Instance not found: %(instance)s"


class ConflictError(FencelineException):
    msg_fmt = "Conflict: %(reason)s"


class PriorityConflict(ConflictError):
    msg_fmt = "Priority %(priority)s is already in use"


class InstanceInUse(ConflictError):
    msg_fmt = "Instance %(instance)s is referenced by %(count)d rule(s)"


class InstanceExists(ConflictError):
    msg_fmt = "Instance %(name)s already exists"


class FormatError(FencelineException):
    msg_fmt = "Bad format: %(reason)s"


class InvalidWKT(FormatError):
    msg_fmt = "Error parsing WKT: %(reason)s"
