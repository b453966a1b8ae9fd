"""Fenceline configuration options.

This module defines configuration options for the Fenceline service using
oslo.config. Options are organized into groups following OpenStack patterns.
"""

from __future__ import annotations

from typing import Any

from oslo_config import cfg
from oslo_log import log

LOG = log.getLogger(__name__)

CONF = cfg.CONF

api_opts: list[cfg.Opt] = [
    cfg.HostAddressOpt(
        "bind_host",
        default="0.0.0.0",
        help="Address the development server listens on.",
    ),
    cfg.PortOpt(
        "bind_port",
        default=8779,
        help="Port the development server listens on.",
    ),
    cfg.IntOpt(
        "max_limit",
        default=1000,
        min=1,
        help="Maximum number of rules returned in a single page.",
    ),
    cfg.StrOpt(
        "default_catalog_mode",
        default="HIDE",
        choices=["HIDE", "CHALLENGE", "MIXED"],
        help="Catalog mode given to layer details created without one.",
    ),
    cfg.BoolOpt(
        "auto_apply_schema",
        default=True,
        help="Automatically apply Neo4j schema on startup.",
    ),
]

database_opts: list[cfg.Opt] = [
    cfg.StrOpt(
        "backend",
        default="neo4j",
        choices=["neo4j", "memory"],
        help="Rule store backend. The memory backend keeps rules in the "
        "process and is meant for development and testing.",
    ),
]

neo4j_opts: list[cfg.Opt] = [
    cfg.URIOpt(
        "uri", default="bolt://localhost:7687", help="Neo4j database connection URI."
    ),
    cfg.StrOpt("username", default="neo4j", help="Neo4j database username."),
    cfg.StrOpt(
        "password", default="password", secret=True, help="Neo4j database password."
    ),
]


def register_opts(conf: cfg.ConfigOpts) -> None:
    """Register configuration options with a ConfigOpts instance.

    :param conf: oslo.config ConfigOpts instance
    """
    LOG.debug("Registering configuration options")
    conf.register_opts(api_opts, group="api")
    conf.register_opts(database_opts, group="database")
    conf.register_opts(neo4j_opts, group="neo4j")


def list_opts() -> list[tuple[str, list[Any]]]:
    """Return a list of oslo.config options.

    This is used for documentation generation (oslo-config-generator).

    :returns: List of (group_name, options) tuples
    """
    return [
        ("api", api_opts),
        ("database", database_opts),
        ("neo4j", neo4j_opts),
    ]


# Register options on module import for convenience
register_opts(CONF)


def to_app_config(conf: cfg.ConfigOpts) -> dict[str, Any]:
    """Build the application config mapping from parsed options.

    :param conf: parsed oslo.config ConfigOpts instance
    :returns: dict of Flask-style config keys
    """
    return {
        "MAX_LIMIT": conf.api.max_limit,
        "DEFAULT_CATALOG_MODE": conf.api.default_catalog_mode,
        "AUTO_APPLY_SCHEMA": conf.api.auto_apply_schema,
        "DATABASE_BACKEND": conf.database.backend,
        "NEO4J_URI": conf.neo4j.uri,
        "NEO4J_USERNAME": conf.neo4j.username,
        "NEO4J_PASSWORD": conf.neo4j.password,
    }
