# SPDX-License-Identifier: Apache-2.0

"""Instances API blueprint.

Registry of the network instances rules can be scoped to.
"""

from __future__ import annotations

import flask

from fenceline.api import errors
from fenceline.rules import model

bp = flask.Blueprint("instances", __name__, url_prefix="/instances")


def _service():
    """Get the rule admin service from the Flask app.

    :returns: RuleAdminService instance
    """
    from fenceline.api import app

    return app.get_service()


def _to_json(instance):
    return {
        "id": instance.id,
        "name": instance.name,
        "description": instance.description,
        "base_url": instance.base_url,
    }


@bp.route("", methods=["GET"])
def list_instances():
    instances = _service().list_instances()
    return flask.jsonify({"instances": [_to_json(i) for i in instances]}), 200


@bp.route("", methods=["POST"])
def create_instance():
    """Register an instance.

    Body keys: ``name`` (required), ``description``, ``base_url``.

    :returns: Tuple of (response, status_code), 201 with the new id
    """
    try:
        data = flask.request.get_json(force=True, silent=False)
    except Exception as exc:
        raise errors.BadRequest("Malformed JSON: %s" % exc)
    if not isinstance(data, dict):
        raise errors.BadRequest("JSON does not validate")

    instance_id = _service().create_instance(model.Instance(
        name=data.get("name"),
        description=data.get("description"),
        base_url=data.get("base_url"),
    ))
    resp = flask.jsonify({"id": instance_id})
    resp.headers["Location"] = flask.url_for(
        ".get_instance", instance_id=instance_id
    )
    return resp, 201


@bp.route("/<int:instance_id>", methods=["GET"])
def get_instance(instance_id):
    return flask.jsonify(_to_json(_service().get_instance(instance_id))), 200


@bp.route("/<int:instance_id>", methods=["DELETE"])
def delete_instance(instance_id):
    """Delete an instance no rule refers to."""
    if not _service().delete_instance(instance_id):
        raise errors.NotFound("Instance not found: %s" % instance_id)
    return flask.Response(status=204)
