"""Test module for JSON-driven schema migrations."""

import json
from pathlib import Path

import peewee
import pytest
from peewee import SqliteDatabase

from migrations.schema.run import (
    MigrationManager,
    get_latest_schema_version,
    load_spec,
    parse_field,
)

SCHEMA_DIR = str(Path(__file__).resolve().parents[1] / "migrations" / "schema")

LEGACY_TABLE = """
CREATE TABLE otp_verifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone VARCHAR(15) NOT NULL,
    otp VARCHAR(6) NOT NULL,
    purpose VARCHAR(20) NOT NULL,
    verified INTEGER NOT NULL DEFAULT 0,
    expires_at DATETIME NOT NULL,
    created_at DATETIME NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    max_attempts INTEGER NOT NULL DEFAULT 3
)
"""


@pytest.fixture()
def legacy_db(tmp_path):
    """SQLite database holding an OTP table from before verified_at existed."""
    db = SqliteDatabase(tmp_path / "legacy.db")
    db.connect()
    db.execute_sql(LEGACY_TABLE)
    yield db
    db.close()


def column_names(db, table="otp_verifications"):
    return {column.name for column in db.get_columns(table)}


def index_columns(db, table="otp_verifications"):
    return {tuple(index.columns) for index in db.get_indexes(table)}


def test_parse_field():
    field = parse_field("CharField(max_length=32)")
    assert isinstance(field, peewee.CharField)
    assert field.max_length == 32

    field = parse_field("DateTimeField(null=True)")
    assert isinstance(field, peewee.DateTimeField)
    assert field.null is True


@pytest.mark.parametrize(
    "field_str",
    ["CharField", "BlobField()", "IntegerField(default=__import__('os'))"],
)
def test_parse_field_rejects(field_str):
    """Test malformed or disallowed field definitions."""
    with pytest.raises(ValueError):
        parse_field(field_str)


def test_migrate_operations(legacy_db):
    """Test the OTP table gains verified_at and its lookup index."""
    manager = MigrationManager(legacy_db)

    manager.migrate_operations(
        [
            {
                "action": "add_column",
                "table": "otp_verifications",
                "column_name": "verified_at",
                "field": "DateTimeField(null=True)",
            },
            {
                "action": "add_index",
                "table": "otp_verifications",
                "columns": ["phone", "purpose"],
                "unique": False,
            },
        ]
    )

    assert manager.migrations_done == 2
    assert manager.migrations_failed == 0
    assert "verified_at" in column_names(legacy_db)
    assert ("phone", "purpose") in index_columns(legacy_db)


def test_migrate_operations_counts_failures(legacy_db):
    """Test a failed operation does not stop the ones after it."""
    manager = MigrationManager(legacy_db)
    operations = [
        {"action": "truncate_table", "table": "otp_verifications"},
        {
            "action": "add_column",
            "table": "otp_verifications",
            "column_name": "notes",
            "field": "BlobField()",
        },
        {
            "action": "add_index",
            "table": "otp_verifications",
            "columns": ["otp", "expires_at"],
            "unique": False,
        },
    ]

    manager.migrate_operations(operations)

    assert manager.migrations_done == 1
    assert manager.migrations_failed == 2
    assert operations[0]["action"] == "truncate_table"


def test_shipped_spec_uses_known_actions(legacy_db):
    manager = MigrationManager(legacy_db)
    version = get_latest_schema_version(SCHEMA_DIR)

    assert version == "v1.0"
    for operation in load_spec(version, SCHEMA_DIR):
        assert operation["action"] in manager.actions
        assert operation["table"] == "otp_verifications"
        if "field" in operation:
            parse_field(operation["field"])


def test_check_and_migrate_schema(legacy_db, tmp_path):
    migration_dir = tmp_path / "schema"
    migration_dir.mkdir()
    (migration_dir / "v1.0.json").write_text(
        json.dumps(
            [
                {
                    "action": "add_column",
                    "table": "otp_verifications",
                    "column_name": "verified_at",
                    "field": "DateTimeField(null=True)",
                }
            ]
        ),
        encoding="utf-8",
    )
    manager = MigrationManager(legacy_db)

    manager.check_and_migrate_schema("v1.0", str(migration_dir))
    assert manager.migrations_done == 0

    manager.check_and_migrate_schema("v0.9", str(migration_dir))
    assert manager.migrations_done == 1
    assert "verified_at" in column_names(legacy_db)


def test_missing_spec(tmp_path):
    assert get_latest_schema_version(str(tmp_path / "missing")) is None

    with pytest.raises(FileNotFoundError):
        load_spec("v9.9", str(tmp_path))
