# SPDX-License-Identifier: Apache-2.0

"""Neo4j rule store.

Each :class:`Neo4jTransaction` wraps one explicit driver transaction. The
graph layout is described in :mod:`fenceline.db.schema`.
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from typing import Any

from neo4j import exceptions as neo4j_exc
from oslo_log import log as logging

from fenceline import exception
from fenceline import geometry
from fenceline.db import api
from fenceline.db import neo4j_api
from fenceline.db import schema
from fenceline.rules import filter as rule_filter
from fenceline.rules import model

LOG = logging.getLogger(__name__)

_RULE_FIELDS = (
    "username", "rolename", "service", "request", "workspace", "layer",
    "address_range",
)

_READ_RULES = """
    OPTIONAL MATCH (r)-[:HAS_LIMITS]->(l:RuleLimits)
    OPTIONAL MATCH (r)-[:HAS_DETAILS]->(d:LayerDetails)
    OPTIONAL MATCH (d)-[:HAS_ATTRIBUTE]->(a:LayerAttribute)
    WITH r, i, l, d, a ORDER BY a.position
    RETURN r, i, l, d, collect(a) AS attributes
    ORDER BY r.priority
"""


def filter_clause(flt: rule_filter.RuleFilter) -> tuple[str, dict[str, Any]]:
    """Translate a rule filter into a Cypher predicate over ``r`` and ``i``.

    ``r`` is the rule node and ``i`` its optional instance node.

    :returns: (predicate, parameters); the predicate is ``true`` for ANY
    """
    clauses: list[str] = []
    params: dict[str, Any] = {}

    def add(dim: rule_filter.DimensionFilter, prop: str, absent: str,
            param: str, value: Any) -> None:
        if dim.type is rule_filter.FilterType.ANY:
            return
        if dim.type is rule_filter.FilterType.DEFAULT:
            clauses.append(absent)
            return
        params[param] = value
        match = "%s = $%s" % (prop, param)
        if dim.include_default:
            match = "(%s OR %s)" % (match, absent)
        clauses.append(match)

    for dimension, field in rule_filter.TEXT_FIELDS.items():
        dim = getattr(flt, dimension)
        add(dim, "r.%s" % field, "r.%s IS NULL" % field, field, dim.name)

    inst = flt.instance
    if inst.id is not None:
        add(inst, "i.id", "i IS NULL", "instance_id", inst.id)
    else:
        add(inst, "i.name", "i IS NULL", "instance_name", inst.name)

    return (" AND ".join(clauses) or "true"), params


def _rule_from_record(record) -> model.Rule:
    props = dict(record["r"])
    rule = model.Rule(
        id=props["id"],
        priority=props["priority"],
        grant=model.GrantType(props["grant"]),
        bbox=tuple(props["bbox"]) if props.get("bbox") else None,
        **{name: props.get(name) for name in _RULE_FIELDS},
    )
    if record["i"] is not None:
        rule.instance = model.Instance(**dict(record["i"]))
    if record["l"] is not None:
        limits = dict(record["l"])
        rule.limits = model.RuleLimits(
            catalog_mode=model.coerce_enum(
                model.CatalogMode, limits.get("catalog_mode"), "catalog_mode"),
            allowed_area=geometry.from_wkt(limits.get("allowed_area")),
        )
    if record["d"] is not None:
        details = dict(record["d"])
        rule.details = model.LayerDetails(
            allowed_styles=set(details.get("allowed_styles") or ()),
            attributes=[
                model.LayerAttribute(
                    name=a["name"],
                    datatype=a.get("datatype"),
                    access=model.coerce_enum(
                        model.AccessType, a.get("access"), "access"),
                )
                for a in record["attributes"]
            ],
            cql_filter_read=details.get("cql_filter_read"),
            cql_filter_write=details.get("cql_filter_write"),
            default_style=details.get("default_style"),
            area=geometry.from_wkt(details.get("area")),
            catalog_mode=model.coerce_enum(
                model.CatalogMode, details.get("catalog_mode"), "catalog_mode"),
            type=model.coerce_enum(model.LayerType, details.get("type"), "type"),
        )
    return rule


def _rule_props(rule: model.Rule) -> dict[str, Any]:
    props = {name: getattr(rule, name) for name in _RULE_FIELDS}
    props["grant"] = rule.grant.value
    props["bbox"] = list(rule.bbox) if rule.bbox else None
    return props


def _value(enum_value) -> str | None:
    return enum_value.value if enum_value is not None else None


class Neo4jTransaction(api.RuleTransaction):

    def __init__(self, tx) -> None:
        self._tx = tx

    def _run(self, cypher: str, **params):
        return self._tx.run(cypher, **params)

    def _next_id(self, sequence: str) -> int:
        record = self._run(
            """
            MERGE (s:Sequence {name: $name})
            ON CREATE SET s.value = 0
            SET s.value = s.value + 1
            RETURN s.value AS value
            """,
            name=sequence,
        ).single()
        return record["value"]

    def _check_rule(self, rule_id: int) -> None:
        found = self._run(
            "MATCH (r:Rule {id: $id}) RETURN r.id AS id", id=rule_id
        ).single()
        if not found:
            raise exception.RuleNotFound(rule_id=rule_id)

    def _link_instance(self, rule: model.Rule) -> None:
        self._run(
            "MATCH (r:Rule {id: $id})-[rel:ON_INSTANCE]->() DELETE rel",
            id=rule.id,
        )
        if rule.instance is not None:
            self._run(
                """
                MATCH (r:Rule {id: $id}), (i:Instance {id: $instance_id})
                CREATE (r)-[:ON_INSTANCE]->(i)
                """,
                id=rule.id,
                instance_id=rule.instance.id,
            )

    def get_rule(self, rule_id):
        record = self._run(
            "MATCH (r:Rule {id: $id}) "
            "OPTIONAL MATCH (r)-[:ON_INSTANCE]->(i:Instance)" + _READ_RULES,
            id=rule_id,
        ).single()
        if not record:
            raise exception.RuleNotFound(rule_id=rule_id)
        return _rule_from_record(record)

    def create_rule(self, rule):
        rule_id = self._next_id("rule")
        try:
            self._run(
                """
                CREATE (r:Rule {id: $id, priority: $priority})
                SET r += $props, r.created_at = datetime(),
                    r.updated_at = datetime()
                """,
                id=rule_id,
                priority=rule.priority,
                props=_rule_props(rule),
            ).consume()
        except neo4j_exc.ConstraintError:
            raise exception.PriorityConflict(priority=rule.priority)
        rule.id = rule_id
        self._link_instance(rule)
        return rule_id

    def update_rule(self, rule):
        self._check_rule(rule.id)
        props = _rule_props(rule)
        self._run(
            """
            MATCH (r:Rule {id: $id})
            SET r += $props, r.updated_at = datetime()
            """,
            id=rule.id,
            props=props,
        )
        self._link_instance(rule)

    def delete_rule(self, rule_id):
        try:
            self._check_rule(rule_id)
        except exception.RuleNotFound:
            return False
        self.set_details(rule_id, None)
        self.set_limits(rule_id, None)
        self._run("MATCH (r:Rule {id: $id}) DETACH DELETE r", id=rule_id)
        return True

    def set_details(self, rule_id, details):
        self._check_rule(rule_id)
        self._run(
            """
            MATCH (:Rule {id: $id})-[:HAS_DETAILS]->(d:LayerDetails)
            OPTIONAL MATCH (d)-[:HAS_ATTRIBUTE]->(a:LayerAttribute)
            DETACH DELETE a, d
            """,
            id=rule_id,
        )
        if details is None:
            return
        self._run(
            """
            MATCH (r:Rule {id: $id})
            CREATE (r)-[:HAS_DETAILS]->(d:LayerDetails)
            SET d = $props
            WITH d
            UNWIND $attributes AS attr
            CREATE (d)-[:HAS_ATTRIBUTE]->(a:LayerAttribute)
            SET a = attr
            """,
            id=rule_id,
            props={
                "allowed_styles": sorted(details.allowed_styles),
                "cql_filter_read": details.cql_filter_read,
                "cql_filter_write": details.cql_filter_write,
                "default_style": details.default_style,
                "area": geometry.to_wkt(details.area),
                "catalog_mode": _value(details.catalog_mode),
                "type": _value(details.type),
            },
            attributes=[
                {
                    "name": attr.name,
                    "datatype": attr.datatype,
                    "access": _value(attr.access),
                    "position": position,
                }
                for position, attr in enumerate(details.attributes)
            ],
        )

    def set_limits(self, rule_id, limits):
        self._check_rule(rule_id)
        self._run(
            "MATCH (:Rule {id: $id})-[:HAS_LIMITS]->(l:RuleLimits) DETACH DELETE l",
            id=rule_id,
        )
        if limits is None:
            return
        self._run(
            """
            MATCH (r:Rule {id: $id})
            CREATE (r)-[:HAS_LIMITS]->(l:RuleLimits)
            SET l = $props
            """,
            id=rule_id,
            props={
                "catalog_mode": _value(limits.catalog_mode),
                "allowed_area": geometry.to_wkt(limits.allowed_area),
            },
        )

    def search(self, flt, page=None, entries=None):
        where, params = filter_clause(flt)
        cypher = (
            "MATCH (r:Rule) OPTIONAL MATCH (r)-[:ON_INSTANCE]->(i:Instance) "
            "WITH r, i WHERE %s WITH r, i ORDER BY r.priority" % where
        )
        window = api.paginate(page, entries)
        if window is not None:
            cypher += " SKIP $skip LIMIT $limit"
            params["skip"], params["limit"] = window
        rows = self._run(cypher + _READ_RULES, **params)
        return [_rule_from_record(record) for record in rows]

    def count(self, flt):
        where, params = filter_clause(flt)
        record = self._run(
            "MATCH (r:Rule) OPTIONAL MATCH (r)-[:ON_INSTANCE]->(i:Instance) "
            "WITH r, i WHERE %s RETURN count(r) AS cnt" % where,
            **params,
        ).single()
        return record["cnt"]

    def priority_bounds(self):
        record = self._run(
            "MATCH (r:Rule) RETURN min(r.priority) AS lo, max(r.priority) AS hi"
        ).single()
        return record["lo"], record["hi"]

    def _lowest_from(self, threshold):
        return self._run(
            "MATCH (r:Rule) WHERE r.priority >= $threshold "
            "RETURN min(r.priority) AS p",
            threshold=threshold,
        ).single()["p"]

    def _highest_below(self, threshold):
        return self._run(
            "MATCH (r:Rule) WHERE 0 <= r.priority < $threshold "
            "RETURN max(r.priority) AS p",
            threshold=threshold,
        ).single()["p"]

    def _park_from(self, threshold):
        return self._run(
            """
            MATCH (r:Rule) WHERE r.priority >= $threshold
            SET r.priority = -r.priority - 1
            RETURN count(r) AS cnt
            """,
            threshold=threshold,
        ).single()["cnt"]

    def _unpark(self, amount):
        self._run(
            """
            MATCH (r:Rule) WHERE r.priority < 0
            SET r.priority = -r.priority - 1 + $amount,
                r.updated_at = datetime()
            """,
            amount=amount,
        )

    def _set_priority(self, rule_id, priority):
        try:
            self._run(
                "MATCH (r:Rule {id: $id}) SET r.priority = $priority",
                id=rule_id,
                priority=priority,
            ).consume()
        except neo4j_exc.ConstraintError:
            raise exception.PriorityConflict(priority=priority)

    def create_instance(self, instance):
        instance_id = self._next_id("instance")
        try:
            self._run(
                """
                CREATE (i:Instance {id: $id, name: $name})
                SET i.description = $description, i.base_url = $base_url
                """,
                id=instance_id,
                name=instance.name,
                description=instance.description,
                base_url=instance.base_url,
            ).consume()
        except neo4j_exc.ConstraintError:
            raise exception.InstanceExists(name=instance.name)
        return instance_id

    def get_instance(self, instance_id=None, name=None):
        if instance_id is not None and name is not None:
            raise exception.AmbiguousFilter(id=instance_id, name=name)
        if instance_id is not None:
            record = self._run(
                "MATCH (i:Instance {id: $id}) RETURN i", id=instance_id
            ).single()
        else:
            record = self._run(
                "MATCH (i:Instance {name: $name}) RETURN i", name=name
            ).single()
        if not record:
            raise exception.InstanceNotFound(
                instance=instance_id if instance_id is not None else name
            )
        return model.Instance(**dict(record["i"]))

    def list_instances(self):
        rows = self._run("MATCH (i:Instance) RETURN i ORDER BY i.id")
        return [model.Instance(**dict(record["i"])) for record in rows]

    def delete_instance(self, instance_id):
        record = self._run(
            """
            MATCH (i:Instance {id: $id})
            OPTIONAL MATCH (r:Rule)-[:ON_INSTANCE]->(i)
            RETURN i.id AS id, count(r) AS users
            """,
            id=instance_id,
        ).single()
        if not record:
            return False
        if record["users"]:
            raise exception.InstanceInUse(instance=instance_id,
                                          count=record["users"])
        self._run("MATCH (i:Instance {id: $id}) DELETE i", id=instance_id)
        return True


class Neo4jRuleStore(api.RuleStore):
    """Rule store backed by a Neo4j database."""

    def __init__(self, client: neo4j_api.Neo4jClient) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config) -> Neo4jRuleStore:
        client = neo4j_api.init_driver(
            config["NEO4J_URI"],
            config.get("NEO4J_USERNAME"),
            config.get("NEO4J_PASSWORD"),
        )
        if config.get("AUTO_APPLY_SCHEMA", True):
            with client.session() as session:
                schema.apply_schema(session)
        return cls(client)

    @contextlib.contextmanager
    def transaction(self) -> Generator[Neo4jTransaction, None, None]:
        with self._client.transaction() as tx:
            yield Neo4jTransaction(tx)

    def close(self) -> None:
        self._client.close()
