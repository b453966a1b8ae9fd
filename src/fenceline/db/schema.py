"""Schema helpers for Neo4j.

This module defines the database schema (constraints and indexes) for
Fenceline. Schema is applied via Cypher statements rather than migrations.

Rules are ``(:Rule)`` nodes. Their limits, layer details and layer
attributes hang off them as ``(:RuleLimits)``, ``(:LayerDetails)`` and
``(:LayerAttribute)`` nodes; a rule scoped to an instance points at an
``(:Instance)`` node. Integer ids come from ``(:Sequence)`` counter nodes.
"""

# Uniqueness constraints (also create indexes automatically)
UNIQUENESS_CONSTRAINTS = [
    # Rule
    "CREATE CONSTRAINT rule_id_unique IF NOT EXISTS "
    "FOR (r:Rule) REQUIRE r.id IS UNIQUE",
    "CREATE CONSTRAINT rule_priority_unique IF NOT EXISTS "
    "FOR (r:Rule) REQUIRE r.priority IS UNIQUE",
    # Instance
    "CREATE CONSTRAINT instance_id_unique IF NOT EXISTS "
    "FOR (i:Instance) REQUIRE i.id IS UNIQUE",
    "CREATE CONSTRAINT instance_name_unique IF NOT EXISTS "
    "FOR (i:Instance) REQUIRE i.name IS UNIQUE",
    # Id sequences
    "CREATE CONSTRAINT sequence_name_unique IF NOT EXISTS "
    "FOR (s:Sequence) REQUIRE s.name IS UNIQUE",
]

# Property existence constraints
# NOTE: These require Neo4j Enterprise Edition and are skipped in Community Edition.
# The application logic enforces these constraints instead.
EXISTENCE_CONSTRAINTS: list[str] = [
    # Every rule must have a grant
    # "CREATE CONSTRAINT rule_grant_exists IF NOT EXISTS "
    # "FOR (r:Rule) REQUIRE r.grant IS NOT NULL",
]

# Performance indexes (beyond those created by uniqueness constraints)
INDEXES = [
    "CREATE INDEX rule_layer_idx IF NOT EXISTS FOR (r:Rule) ON (r.layer)",
    "CREATE INDEX rule_workspace_idx IF NOT EXISTS FOR (r:Rule) ON (r.workspace)",
    "CREATE INDEX rule_username_idx IF NOT EXISTS FOR (r:Rule) ON (r.username)",
    "CREATE INDEX rule_rolename_idx IF NOT EXISTS FOR (r:Rule) ON (r.rolename)",
]

# All schema statements in order
SCHEMA_STATEMENTS = UNIQUENESS_CONSTRAINTS + EXISTENCE_CONSTRAINTS + INDEXES


def apply_schema(session) -> None:
    """Apply all schema constraints and indexes.

    Args:
        session: Neo4j session to execute statements against.

    Note:
        Uses IF NOT EXISTS to make this idempotent.
    """
    for statement in SCHEMA_STATEMENTS:
        session.run(statement)
