"""Gabbi fixtures for Fenceline API functional tests.

Each YAML file gets its own Flask development server running in a separate
thread on a dynamically allocated port. The rule store is in memory unless
FENCELINE_TEST_NEO4J is set, in which case a Neo4j database is used (a
testcontainer, or the external database named by FENCELINE_NEO4J_URI).
"""

import os
import socket
import threading

import fixtures
from gabbi import fixture as gabbi_fixture
from testcontainers.core.waiting_utils import wait_for_logs
from testcontainers.neo4j import Neo4jContainer
from werkzeug.serving import make_server

from fenceline.api import create_app
from fenceline.db import neo4j_api


def get_free_port():
    """Find and return a free port on localhost.

    Returns:
        int: A free port number.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


def use_neo4j():
    return bool(os.environ.get("FENCELINE_TEST_NEO4J")
                or os.environ.get("FENCELINE_NEO4J_URI"))


class FencelineNeo4jContainer(Neo4jContainer):
    """Neo4j container that waits for the 5.x startup log line."""

    def _connect(self) -> None:
        wait_for_logs(self, "Bolt enabled on", timeout=120)


class Neo4jFixture(fixtures.Fixture):
    """Provides an empty Neo4j database for testing.

    Uses testcontainers to spin up a fresh Neo4j container unless
    FENCELINE_NEO4J_URI is set, in which case the external database is
    wiped and used.

    Attributes:
        uri: Bolt connection URI.
        username: Database username.
        password: Database password.
    """

    def __init__(self):
        super().__init__()
        self.container = None
        self.uri = None
        self.username = None
        self.password = None

    def _setUp(self):
        external_uri = os.environ.get("FENCELINE_NEO4J_URI")
        if external_uri:
            self.uri = external_uri
            self.username = os.environ.get("FENCELINE_NEO4J_USERNAME", "neo4j")
            self.password = os.environ.get("FENCELINE_NEO4J_PASSWORD", "password")
            self._wipe()
            return

        self.container = FencelineNeo4jContainer(
            image="neo4j:5-community",
            password="password",
        )
        # Reduce memory for CI environments
        self.container.with_env("NEO4J_dbms_memory_heap_initial__size", "256m")
        self.container.with_env("NEO4J_dbms_memory_heap_max__size", "512m")
        self.container.start()
        self.addCleanup(self._stop_container)

        self.uri = self.container.get_connection_url()
        self.username = "neo4j"
        self.password = "password"

    def _wipe(self):
        client = neo4j_api.init_driver(self.uri, self.username, self.password)
        try:
            with client.session() as session:
                session.run("MATCH (n) DETACH DELETE n")
        finally:
            client.close()

    def _stop_container(self):
        if self.container is not None:
            self.container.stop()
            self.container = None

    def app_config(self):
        return {
            "DATABASE_BACKEND": "neo4j",
            "NEO4J_URI": self.uri,
            "NEO4J_USERNAME": self.username,
            "NEO4J_PASSWORD": self.password,
        }


class APIFixture(gabbi_fixture.GabbiFixture):
    """Gabbi fixture for API tests.

    Sets up a rule store and a Flask development server in a separate
    thread. The port is allocated at fixture time and stored in the
    FENCELINE_TEST_PORT environment variable.

    Used by declaring in YAML test files:
        fixtures:
          - APIFixture
    """

    def start_fixture(self):
        flask_config = {
            "TESTING": True,
            "DATABASE_BACKEND": "memory",
            "MAX_LIMIT": 3,
        }
        self.db_fixture = None
        if use_neo4j():
            self.db_fixture = Neo4jFixture()
            self.db_fixture.setUp()
            flask_config.update(self.db_fixture.app_config())

        self.port = get_free_port()
        os.environ['FENCELINE_TEST_PORT'] = str(self.port)

        self.app = create_app(flask_config)

        self.server = make_server('127.0.0.1', self.port, self.app, threaded=True)
        self.server_thread = threading.Thread(
            target=self.server.serve_forever,
            daemon=True,
        )
        self.server_thread.start()

    def stop_fixture(self):
        self.server.shutdown()
        self.server_thread.join(timeout=5)

        store = self.app.extensions.get("rule_store")
        if store is not None:
            store.close()

        if self.db_fixture is not None:
            self.db_fixture.cleanUp()

        os.environ.pop('FENCELINE_TEST_PORT', None)
