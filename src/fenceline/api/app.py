# SPDX-License-Identifier: Apache-2.0

"""Flask application factory for Fenceline API."""

from __future__ import annotations

import flask

from fenceline.api import errors
from fenceline.api import middleware
from fenceline.api.blueprints import instances
from fenceline.api.blueprints import root
from fenceline.api.blueprints import rules
from fenceline.db import api as db_api
from fenceline.rules import admin


def create_app(config=None):
    """Create and configure the Flask application.

    :param config: Optional configuration dictionary to override defaults
    :returns: Configured Flask application instance
    """
    app = flask.Flask(__name__)

    # Defaults
    app.config.setdefault("MAX_LIMIT", 1000)
    app.config.setdefault("DEFAULT_CATALOG_MODE", "HIDE")
    app.config.setdefault("DATABASE_BACKEND", "neo4j")
    app.config.setdefault("NEO4J_URI", "bolt://localhost:7687")
    app.config.setdefault("NEO4J_USERNAME", "neo4j")
    app.config.setdefault("NEO4J_PASSWORD", "password")
    app.config.setdefault("AUTO_APPLY_SCHEMA", True)
    app.config.setdefault("SKIP_DB_INIT", False)

    if config:
        app.config.update(config)

    # Register middleware and errors
    middleware.register(app)
    errors.register_handlers(app)

    # Initialize the rule store (unless skipped for test discovery)
    if not app.config.get("SKIP_DB_INIT"):
        _init_store(app)

    # Register blueprints
    app.register_blueprint(root.bp)
    app.register_blueprint(rules.bp)
    app.register_blueprint(instances.bp)

    return app


def _init_store(app):
    """Initialize the rule store and the admin service on top of it.

    :param app: Flask application instance
    """
    store = db_api.load_store(app.config)
    app.extensions["rule_store"] = store
    app.extensions["rule_admin"] = admin.RuleAdminService(
        store,
        max_limit=app.config["MAX_LIMIT"],
        default_catalog_mode=app.config["DEFAULT_CATALOG_MODE"],
    )


def get_service():
    """Get the rule admin service, initializing lazily if needed.

    This supports the functional test pattern where the app is created
    during test discovery (without DB), and the store is configured
    later when the test fixture sets up the database.

    :returns: RuleAdminService instance
    """
    if "rule_admin" not in flask.current_app.extensions:
        _init_store(flask.current_app._get_current_object())
    return flask.current_app.extensions["rule_admin"]
