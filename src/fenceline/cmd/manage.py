# SPDX-License-Identifier: Apache-2.0

"""CLI interface for fenceline management.

Usage:
    fenceline-manage db sync                 # Apply database schema
    fenceline-manage db version              # Print schema info
    fenceline-manage rule list [--page N --entries M]
    fenceline-manage rule count
    fenceline-manage rule shift PRIORITY [--amount N]
    fenceline-manage rule swap ID1 ID2
    fenceline-manage rule delete ID
    fenceline-manage version                 # Print fenceline version
"""

from __future__ import annotations

import contextlib
import functools
import sys
import traceback
from typing import Iterator

from oslo_config import cfg
from oslo_log import log as logging

from fenceline import conf
from fenceline import exception
from fenceline.cmd import common as cmd_common
from fenceline.db import api as db_api
from fenceline.db import neo4j_api
from fenceline.db import schema
from fenceline.rules import admin

CONF = cfg.CONF
LOG = logging.getLogger(__name__)

# Suppress verbose logging for CLI commands
_EXTRA_DEFAULT_LOG_LEVELS = [
    "fenceline=WARNING",
    "neo4j=WARNING",
]


@contextlib.contextmanager
def _admin_service() -> Iterator[admin.RuleAdminService]:
    """Yield an admin service whose store is closed on exit."""
    config = conf.to_app_config(CONF)
    store = db_api.load_store(config)
    try:
        yield admin.RuleAdminService(
            store,
            max_limit=config["MAX_LIMIT"],
            default_catalog_mode=config["DEFAULT_CATALOG_MODE"],
        )
    finally:
        store.close()


class DbCommands:
    """Class for managing the Neo4j database."""

    description = "Database management commands"

    def sync(self) -> int:
        """Sync the database schema (constraints and indexes).

        Applies all schema constraints and indexes to the Neo4j database.
        This command is idempotent - safe to run multiple times.
        """
        print("Connecting to Neo4j...")
        driver = neo4j_api.init_driver(
            CONF.neo4j.uri,
            CONF.neo4j.username,
            CONF.neo4j.password,
        )
        try:
            print("Applying database schema...")
            with driver.session() as session:
                schema.apply_schema(session)
            print("Database schema synced successfully.")
            return 0
        except Exception as e:
            print(f"Error applying schema: {e}")
            return 1
        finally:
            driver.close()

    def version(self) -> int:
        """Print schema information."""
        print(f"Schema statements: {len(schema.SCHEMA_STATEMENTS)}")
        print(f"  Uniqueness constraints: {len(schema.UNIQUENESS_CONSTRAINTS)}")
        print(f"  Existence constraints: {len(schema.EXISTENCE_CONSTRAINTS)}")
        print(f"  Indexes: {len(schema.INDEXES)}")
        return 0


class RuleCommands:
    """Rule maintenance from the command line."""

    description = "Rule administration commands"

    @cmd_common.args("--page", type=int, help="Page number, from 0")
    @cmd_common.args("--entries", type=int, help="Rules per page")
    def list(self, page: int | None = None, entries: int | None = None) -> int:
        """List rules by ascending priority."""
        with _admin_service() as service:
            found = service.search(page=page, entries=entries)
        for rule in found:
            print(f"{rule.priority:>6} {rule.id:>6} {rule.grant.value:<5} "
                  f"user={rule.username or '*'} role={rule.rolename or '*'} "
                  f"service={rule.service or '*'} request={rule.request or '*'} "
                  f"workspace={rule.workspace or '*'} layer={rule.layer or '*'}")
        return 0

    def count(self) -> int:
        """Print the number of rules."""
        with _admin_service() as service:
            print(service.count())
        return 0

    @cmd_common.args("priority", type=int, help="First priority to move")
    @cmd_common.args("--amount", type=int, default=1, help="Distance to move")
    def shift(self, priority: int, amount: int = 1) -> int:
        """Move every rule at or after a priority."""
        with _admin_service() as service:
            moved = service.shift(priority, amount)
        print(f"Shifted {moved} rule(s).")
        return 0

    @cmd_common.args("id1", type=int, help="First rule id")
    @cmd_common.args("id2", type=int, help="Second rule id")
    def swap(self, id1: int, id2: int) -> int:
        """Exchange the priorities of two rules."""
        with _admin_service() as service:
            service.swap(id1, id2)
        return 0

    @cmd_common.args("rule_id", type=int, help="Rule id")
    def delete(self, rule_id: int) -> int:
        """Delete a rule."""
        with _admin_service() as service:
            deleted = service.delete(rule_id)
        if not deleted:
            print(f"Rule not found: {rule_id}")
            return 1
        return 0


CATEGORIES: dict[str, type] = {
    "db": DbCommands,
    "rule": RuleCommands,
}


def main() -> int:
    """Parse options and call the appropriate class/method.

    :returns: exit code (0 for success, non-zero for failure)
    """
    add_command_parsers = functools.partial(
        cmd_common.add_command_parsers, categories=CATEGORIES
    )
    category_opt = cfg.SubCommandOpt(
        "category",
        title="Command categories",
        help="Available categories",
        handler=add_command_parsers,
    )
    CONF.register_cli_opts([category_opt])

    # Register logging options and parse config
    logging.register_options(CONF)
    try:
        CONF(sys.argv[1:], project="fenceline")
    except cfg.ConfigFilesNotFoundError:
        # Config file is optional for CLI commands
        CONF(sys.argv[1:], project="fenceline", default_config_files=[])

    logging.set_defaults(
        default_log_levels=logging.get_default_log_levels()
        + _EXTRA_DEFAULT_LOG_LEVELS
    )
    logging.setup(CONF, "fenceline")

    if CONF.category.name == "version":
        from fenceline import __version__

        print(f"fenceline {__version__}")
        return 0

    try:
        fn, fn_kwargs = cmd_common.get_action_fn()
        ret = fn(**fn_kwargs)
        return ret if ret is not None else 0
    except cmd_common.MissingArgs as e:
        print(f"Error: {e}")
        return 1
    except exception.FencelineException as e:
        print(f"Error: {e}")
        return 1
    except Exception:
        print(f"An error has occurred:\n{traceback.format_exc()}")
        return 255


if __name__ == "__main__":
    sys.exit(main())
