# SPDX-License-Identifier: Apache-2.0

"""Rules API blueprint.

Thin JSON adaptation of :class:`fenceline.rules.admin.RuleAdminService`.
Field values follow the usual convention: a key that is missing or null is
not supplied, an empty string or list clears the stored value.
"""

from __future__ import annotations

from typing import Any

import flask
from oslo_log import log

from fenceline import geometry
from fenceline.api import errors
from fenceline.rules import admin
from fenceline.rules import fields
from fenceline.rules import filter as rule_filter
from fenceline.rules import merge
from fenceline.rules import model
from fenceline.rules import ordering

LOG = log.getLogger(__name__)

bp = flask.Blueprint("rules", __name__, url_prefix="/rules")

_TEXT_KEYS = ("username", "rolename", "service", "request", "workspace", "layer")


def _service() -> admin.RuleAdminService:
    """Get the rule admin service from the Flask app.

    :returns: RuleAdminService instance
    """
    from fenceline.api import app

    return app.get_service()


def _json_body() -> dict[str, Any]:
    try:
        data = flask.request.get_json(force=True, silent=False)
    except Exception as exc:
        raise errors.BadRequest("Malformed JSON: %s" % exc)
    if not isinstance(data, dict):
        raise errors.BadRequest("JSON does not validate")
    return data


def _int_arg(name: str) -> int | None:
    value = flask.request.args.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise errors.BadRequest("Query parameter %s must be an integer" % name)


def _bool_arg(name: str) -> bool | None:
    value = flask.request.args.get(name)
    if value is None or value == "":
        return None
    return value.lower() == "true"


def _text(data: dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise errors.BadRequest("%s must be a string" % key)
    return value


def _styles(value: Any) -> Any:
    if value is fields.UNSET or value is fields.CLEAR:
        return value
    if not isinstance(value, list) or not all(
        isinstance(style, str) for style in value
    ):
        raise errors.BadRequest("allowed_styles must be a list of strings")
    return set(value)


def _instance_ref(value: Any) -> model.Instance:
    if not isinstance(value, dict):
        raise errors.BadRequest("instance must be an object with id or name")
    return model.Instance(id=value.get("id"), name=value.get("name"))


def _attributes(value: Any) -> list[model.LayerAttribute]:
    if not isinstance(value, list):
        raise errors.BadRequest("attributes must be a list")
    result = []
    for item in value:
        if not isinstance(item, dict) or not item.get("name"):
            raise errors.BadRequest("every attribute needs a name")
        result.append(model.LayerAttribute(
            name=item["name"],
            datatype=item.get("datatype"),
            access=model.coerce_enum(model.AccessType, item.get("access"), "access"),
        ))
    return result


def constraints_from_json(data: dict[str, Any] | None) -> merge.ConstraintUpdate | None:
    """Build a constraint update from the ``constraints`` object of a request."""
    if data is None:
        return None
    if not isinstance(data, dict):
        raise errors.BadRequest("constraints must be an object")
    update = merge.ConstraintUpdate(
        allowed_styles=_styles(fields.from_wire(data.get("allowed_styles"))),
        attributes=fields.from_wire(data.get("attributes")),
        cql_filter_read=fields.from_wire(_text(data, "cql_filter_read")),
        cql_filter_write=fields.from_wire(_text(data, "cql_filter_write")),
        default_style=fields.from_wire(_text(data, "default_style")),
        area=fields.from_wire(data.get("restricted_area_wkt")),
        catalog_mode=fields.from_wire(data.get("catalog_mode")),
        type=fields.from_wire(data.get("type")),
    )
    if fields.is_set(update.attributes) and update.attributes is not fields.CLEAR:
        update.attributes = _attributes(update.attributes)
    return update


def rule_from_json(data: dict[str, Any]) -> model.Rule:
    rule = model.Rule(
        grant=model.coerce_enum(model.GrantType, data.get("grant"), "grant"),
        address_range=model.parse_address_range(_text(data, "ipaddress")),
        bbox=model.parse_bbox(data.get("bbox")),
        **{key: _text(data, key) or None for key in _TEXT_KEYS},
    )
    if data.get("instance") is not None:
        rule.instance = _instance_ref(data["instance"])
    return rule


def changes_from_json(data: dict[str, Any]) -> admin.RuleChanges:
    changes = admin.RuleChanges(
        grant=fields.from_wire(data.get("grant")),
        address_range=fields.from_wire(_text(data, "ipaddress")),
        bbox=fields.from_wire(data.get("bbox")),
        position=fields.from_wire(data.get("position")),
        **{key: fields.from_wire(_text(data, key)) for key in _TEXT_KEYS},
    )
    instance = data.get("instance")
    if instance is not None:
        ref = _instance_ref(instance)
        changes.instance = fields.CLEAR if ref.id is None and ref.name is None else ref
    return changes


def _enum_value(value):
    return value.value if value is not None else None


def rule_to_json(rule: model.Rule) -> dict[str, Any]:
    """Serialise a rule for output."""
    out: dict[str, Any] = {
        "id": rule.id,
        "priority": rule.priority,
        "grant": _enum_value(rule.grant),
        "ipaddress": rule.address_range,
        "bbox": list(rule.bbox) if rule.bbox else None,
        "instance": None,
    }
    for key in _TEXT_KEYS:
        out[key] = getattr(rule, key)
    if rule.instance is not None:
        out["instance"] = {"id": rule.instance.id, "name": rule.instance.name}

    details = rule.details
    if details is not None:
        out["constraints"] = {
            "allowed_styles": sorted(details.allowed_styles),
            "attributes": [
                {
                    "name": attr.name,
                    "datatype": attr.datatype,
                    "access": _enum_value(attr.access),
                }
                for attr in details.attributes
            ],
            "cql_filter_read": details.cql_filter_read,
            "cql_filter_write": details.cql_filter_write,
            "default_style": details.default_style,
            "catalog_mode": _enum_value(details.catalog_mode),
            "restricted_area_wkt": geometry.to_wkt(details.area),
            "type": _enum_value(details.type),
        }
    elif rule.limits is not None and rule.limits.catalog_mode is not None:
        out["constraints"] = {"catalog_mode": _enum_value(rule.limits.catalog_mode)}

    if rule.limits is not None:
        out["limits"] = {
            "catalog_mode": _enum_value(rule.limits.catalog_mode),
            "allowed_area_wkt": geometry.to_wkt(rule.limits.allowed_area),
        }
    return out


def _filter_from_args() -> rule_filter.RuleFilter:
    return rule_filter.build_filter(
        user_name=flask.request.args.get("user_name"),
        user_default=_bool_arg("user_default"),
        role_name=flask.request.args.get("role_name"),
        role_default=_bool_arg("role_default"),
        instance_id=_int_arg("instance_id"),
        instance_name=flask.request.args.get("instance_name"),
        instance_default=_bool_arg("instance_default"),
        service_name=flask.request.args.get("service_name"),
        service_default=_bool_arg("service_default"),
        request_name=flask.request.args.get("request_name"),
        request_default=_bool_arg("request_default"),
        workspace=flask.request.args.get("workspace"),
        workspace_default=_bool_arg("workspace_default"),
        layer=flask.request.args.get("layer"),
        layer_default=_bool_arg("layer_default"),
    )


@bp.route("", methods=["GET"])
def list_rules():
    """Search rules.

    Query Parameters:
        page, entries: Pagination, both or neither (optional).
        <dimension>_name / <dimension>_default: Per-dimension filter; the
            instance also accepts instance_id. Workspace and layer take
            ``workspace`` and ``layer`` for the name.

    :returns: Tuple of (response, status_code)
    """
    flt = _filter_from_args()
    found = _service().search(flt, _int_arg("page"), _int_arg("entries"))
    return flask.jsonify({"rules": [rule_to_json(r) for r in found]}), 200


@bp.route("/count", methods=["GET"])
def count_rules():
    return flask.jsonify({"count": _service().count(_filter_from_args())}), 200


@bp.route("", methods=["POST"])
def create_rule():
    """Insert a rule.

    The body carries the rule, a ``position`` object with ``position``
    (FIXED, FROM_START or FROM_END) and ``value``, and optional
    ``constraints``.

    :returns: Tuple of (response, status_code), 201 with the new id
    """
    data = _json_body()
    raw_position = data.get("position")
    if not isinstance(raw_position, dict) or raw_position.get("position") is None:
        raise errors.BadRequest("Bad position: %s" % raw_position)
    if data.get("grant") is None:
        raise errors.BadRequest("Missing grant type")

    position = ordering.Position.parse(
        raw_position["position"], raw_position.get("value")
    )
    rule_id = _service().insert(
        rule_from_json(data), position, constraints_from_json(data.get("constraints"))
    )
    resp = flask.jsonify({"id": rule_id})
    resp.headers["Location"] = flask.url_for(".get_rule", rule_id=rule_id)
    resp.set_etag(str(rule_id))
    return resp, 201


@bp.route("/id/<int:rule_id>", methods=["GET"])
def get_rule(rule_id):
    return flask.jsonify(rule_to_json(_service().get(rule_id))), 200


@bp.route("/id/<int:rule_id>", methods=["PUT"])
def update_rule(rule_id):
    data = _json_body()
    _service().update(
        rule_id,
        changes_from_json(data),
        constraints_from_json(data.get("constraints")),
    )
    return flask.Response(status=204)


@bp.route("/id/<int:rule_id>", methods=["DELETE"])
def delete_rule(rule_id):
    if not _service().delete(rule_id):
        raise errors.NotFound("Rule not found: %s" % rule_id)
    return flask.Response(status=204)


@bp.route("/id/<int:rule_id>/limits", methods=["PUT"])
def set_limits(rule_id):
    """Replace the limits of a LIMIT rule.

    Body keys: ``catalog_mode`` and ``restricted_area_wkt``. A missing
    area keeps the previous one.
    """
    data = _json_body()
    _service().set_limits(
        rule_id,
        catalog_mode=data.get("catalog_mode"),
        allowed_area=data.get("restricted_area_wkt"),
    )
    return flask.Response(status=204)


@bp.route("/shift", methods=["POST"])
def shift_rules():
    """Shift rules from ``priority`` onwards by ``amount`` (default 1)."""
    priority = _int_arg("priority")
    if priority is None:
        raise errors.BadRequest("Bad Priority")
    amount = _int_arg("amount")
    moved = _service().shift(priority, 1 if amount is None else amount)
    return flask.jsonify({"shifted": moved}), 200


@bp.route("/swap/<int:id1>/<int:id2>", methods=["POST"])
def swap_rules(id1, id2):
    _service().swap(id1, id2)
    return flask.Response(status=204)
