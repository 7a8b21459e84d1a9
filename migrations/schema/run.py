"""
════════════════════════════════════════════════════════════════════════
                 OTP Store Schema Migrations (Peewee ORM)
════════════════════════════════════════════════════════════════════════

Applies the schema changes listed in ``migrations/schema/v*.json``.

Each file is a list of operations. ``action`` names a playhouse migrator
method and the remaining keys are its arguments, for example::

    {"action": "add_column", "table": "otp_verifications",
     "column_name": "verified_at", "field": "DateTimeField(null=True)"}
"""

import argparse
import ast
import json
import os
from typing import Any, Dict, List, Optional

import peewee
from playhouse.migrate import SchemaMigrator, migrate

from base_logger import get_logger
from src.db import connect

logger = get_logger("migrations.schema")

# ──────────────────────────────────────────────────────────────────────
#                          Configuration
# ──────────────────────────────────────────────────────────────────────
MIGRATION_DIR = os.path.join("migrations", "schema")
SUCCESS = "✅"
FAILED = "❌"

ALLOWED_FIELDS = {
    "CharField": peewee.CharField,
    "BooleanField": peewee.BooleanField,
    "IntegerField": peewee.IntegerField,
    "DateTimeField": peewee.DateTimeField,
    "TextField": peewee.TextField,
}

ALLOWED_FUNCTIONS = {
    "SQL": peewee.SQL,
}

ACTION_NAMES = (
    "add_column",
    "drop_column",
    "rename_column",
    "alter_column_type",
    "add_not_null",
    "drop_not_null",
    "rename_table",
    "add_index",
    "drop_index",
)


# ──────────────────────────────────────────────────────────────────────
#                         Field Parsing
# ──────────────────────────────────────────────────────────────────────
def parse_field(field_str: str) -> peewee.Field:
    """Builds a Peewee field from its definition string.

    Only the field classes in ``ALLOWED_FIELDS`` can be built, and arguments
    must be literals or ``SQL('...')``.

    Args:
        field_str (str): Field definition, e.g. ``CharField(max_length=32)``.

    Returns:
        peewee.Field: The field instance.

    Raises:
        ValueError: If the definition is malformed or not allowed.
    """
    try:
        call = ast.parse(field_str.strip(), mode="eval").body
    except SyntaxError as e:
        raise ValueError(f"Invalid field format: {field_str}") from e

    if not isinstance(call, ast.Call) or not isinstance(call.func, ast.Name):
        raise ValueError(f"Invalid field format: {field_str}")

    field_class = ALLOWED_FIELDS.get(call.func.id)
    if field_class is None:
        raise ValueError(f"Unsupported field type: {call.func.id}")

    args = [_literal(arg) for arg in call.args]
    kwargs = {kw.arg: _literal(kw.value) for kw in call.keywords}
    return field_class(*args, **kwargs)


def _literal(node: ast.AST) -> Any:
    if isinstance(node, ast.List):
        return [_literal(element) for element in node.elts]

    if isinstance(node, ast.Call):
        func_name = node.func.id if isinstance(node.func, ast.Name) else None
        if func_name not in ALLOWED_FUNCTIONS:
            raise ValueError(f"Disallowed function call: {ast.dump(node)}")
        return ALLOWED_FUNCTIONS[func_name](*[_literal(arg) for arg in node.args])

    return ast.literal_eval(node)


# ──────────────────────────────────────────────────────────────────────
#                         Spec Files
# ──────────────────────────────────────────────────────────────────────
def get_latest_schema_version(migration_dir: str = MIGRATION_DIR) -> Optional[str]:
    """
    Find the newest schema version in the migration directory.

    Returns:
        str: Latest version such as ``v1.0``, or None if there is none.
    """
    if not os.path.isdir(migration_dir):
        logger.warning("Migration directory not found: %s", migration_dir)
        return None

    versions = sorted(
        name[: -len(".json")]
        for name in os.listdir(migration_dir)
        if name.startswith("v") and name.endswith(".json")
    )
    return versions[-1] if versions else None


def load_spec(
    spec_version: str, migration_dir: str = MIGRATION_DIR
) -> List[Dict[str, Any]]:
    """
    Load the operations of a schema version.

    Raises:
        FileNotFoundError: If the version file does not exist.
    """
    spec_file_path = os.path.join(migration_dir, f"{spec_version}.json")
    if not os.path.exists(spec_file_path):
        raise FileNotFoundError(f"Spec file '{spec_file_path}' not found.")

    with open(spec_file_path, encoding="utf-8") as f:
        return json.load(f)


# ──────────────────────────────────────────────────────────────────────
#                     Migration Management Class
# ──────────────────────────────────────────────────────────────────────
class MigrationManager:
    """Runs schema operations against one database."""

    def __init__(self, database: peewee.Database):
        self.database = database
        migrator = SchemaMigrator.from_database(database)
        self.actions = {name: getattr(migrator, name) for name in ACTION_NAMES}
        self.migrations_done = 0
        self.migrations_failed = 0

    def migrate_operations(self, operations: List[Dict[str, Any]]):
        """
        Execute migration operations one at a time.

        A failed operation is counted and logged, and the next one still
        runs. Each operation gets its own transaction.

        Args:
            operations (list): Operation dicts as loaded from a spec file.
        """
        logger.info("Running %d migration operations", len(operations))

        for operation in operations:
            arguments = dict(operation)
            action = arguments.pop("action", None)
            logger.info("Performing %s: %s", action, arguments)

            try:
                if action not in self.actions:
                    raise ValueError(f"Unsupported action: {action}")
                if "field" in arguments:
                    arguments["field"] = parse_field(arguments["field"])

                with self.database.atomic():
                    migrate(self.actions[action](**arguments))
            except Exception as e:
                self.migrations_failed += 1
                logger.error("%s Operation %s failed: %s", FAILED, action, e)
                continue

            self.migrations_done += 1
            logger.info("%s Operation %s successful", SUCCESS, action)

        logger.info(
            "Migration summary: %d completed, %d failed",
            self.migrations_done,
            self.migrations_failed,
        )

    def check_and_migrate_schema(
        self, current_schema_version: str, migration_dir: str = MIGRATION_DIR
    ):
        """
        Apply the latest schema version if the database is behind it.

        Args:
            current_schema_version (str): Version the database is at.
            migration_dir (str): Directory holding the version spec files.
        """
        latest_schema_version = get_latest_schema_version(migration_dir)

        if not latest_schema_version or current_schema_version == latest_schema_version:
            logger.info("Database schema is up to date.")
            return

        logger.info(
            "Migration required: %s -> %s",
            current_schema_version,
            latest_schema_version,
        )
        self.migrate_operations(load_spec(latest_schema_version, migration_dir))
        logger.info("Migration to version %s completed.", latest_schema_version)


# ──────────────────────────────────────────────────────────────────────
#                         Command-line Interface
# ──────────────────────────────────────────────────────────────────────
def run(argv=None):
    """Parse command-line arguments and run the requested migration."""
    parser = argparse.ArgumentParser(
        description="Apply OTP store schema migrations."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate_parser = subparsers.add_parser("migrate", help="Apply one version.")
    migrate_parser.add_argument("spec_version", help="Schema version, e.g. v1.0.")

    latest_parser = subparsers.add_parser(
        "latest", help="Apply the newest version if the database is behind."
    )
    latest_parser.add_argument(
        "--current", required=True, help="Version the database is at."
    )

    args = parser.parse_args(argv)
    manager = MigrationManager(connect())

    match args.command:
        case "migrate":
            manager.migrate_operations(load_spec(args.spec_version))
        case "latest":
            manager.check_and_migrate_schema(args.current)

    return 1 if manager.migrations_failed else 0


if __name__ == "__main__":
    raise SystemExit(run())
