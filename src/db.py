# SPDX-License-Identifier: GPL-3.0-only
"""Database connection module."""

from peewee import DatabaseError, SqliteDatabase
from playhouse.mysql_ext import MySQLConnectorDatabase

from base_logger import get_logger
from src.utils import ensure_database_exists, get_configs, get_int_config

logger = get_logger(__name__)

MYSQL_DATABASE = get_configs("MYSQL_DATABASE", default_value="leads_otp")
MYSQL_HOST = get_configs("MYSQL_HOST", default_value="127.0.0.1")
MYSQL_PASSWORD = get_configs("MYSQL_PASSWORD")
MYSQL_USER = get_configs("MYSQL_USER", default_value="root")
MYSQL_PORT = get_int_config("MYSQL_PORT", 3306)
SQLITE_DATABASE_PATH = get_configs("SQLITE_DATABASE_PATH", default_value=":memory:")


def connect():
    """
    Connect to the database for the current mode.

    ``MODE=testing`` selects SQLite; every other mode selects MySQL.

    Returns:
        Database: The database object.
    """
    mode = get_configs("MODE", default_value="development")
    if mode == "testing":
        logger.debug("Using SQLite database at %s", SQLITE_DATABASE_PATH)
        return SqliteDatabase(SQLITE_DATABASE_PATH, pragmas={"foreign_keys": 1})
    return connect_to_mysql()


@ensure_database_exists(
    MYSQL_HOST, MYSQL_USER, MYSQL_PASSWORD, MYSQL_DATABASE, port=MYSQL_PORT
)
def connect_to_mysql():
    """
    Create a MySQL database connection.

    Returns:
        MySQLConnectorDatabase: The connected database object.

    Raises:
        DatabaseError: If the connection cannot be configured.
    """
    try:
        db = MySQLConnectorDatabase(
            MYSQL_DATABASE,
            user=MYSQL_USER,
            password=MYSQL_PASSWORD,
            host=MYSQL_HOST,
            port=MYSQL_PORT,
            charset="utf8mb4",
            collation="utf8mb4_unicode_ci",
        )
        logger.debug("Connected to MySQL database %s successfully", MYSQL_DATABASE)
        return db
    except DatabaseError as error:
        logger.error(
            "Failed to connect to MySQL database %s: %s", MYSQL_DATABASE, error
        )
        raise
