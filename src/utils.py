# SPDX-License-Identifier: GPL-3.0-only
"""Utilities module."""

import os
from functools import wraps
from typing import Any, Callable, List, Optional

import mysql.connector
from peewee import DatabaseError

from base_logger import get_logger

logger = get_logger(__name__)

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off"}


class ConfigurationError(Exception):
    """Raised when a component is constructed with unusable configuration."""


def create_tables(models: List[Any]) -> None:
    """Create the tables of the given models that do not exist yet.

    Models are grouped by the database they are bound to, so models bound to
    a test database are created there.

    Args:
        models: List of Peewee Model classes.
    """
    if not models:
        logger.warning("No models provided for table creation.")
        return

    by_database = {}
    for model in models:
        by_database.setdefault(model._meta.database, []).append(model)

    for database, db_models in by_database.items():
        try:
            existing_tables = set(database.get_tables())
            missing = [
                model
                for model in db_models
                if model._meta.table_name not in existing_tables
            ]
            if not missing:
                continue

            with database.atomic():
                database.create_tables(missing)
            logger.info(
                "Created tables: %s", ", ".join(m._meta.table_name for m in missing)
            )
        except DatabaseError as e:
            logger.error("An error occurred while creating tables: %s", e)


def ensure_database_exists(
    host: str, user: str, password: str, database_name: str, port: int = 3306
) -> Callable:
    """Decorator that creates the MySQL database before the wrapped call.

    A failure to reach the server is logged, and the wrapped call still runs
    so that it reports the connection error itself.

    Args:
        host: MySQL server host address.
        user: MySQL username.
        password: MySQL password.
        database_name: Database to create if missing.
        port: MySQL server port.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                with mysql.connector.connect(
                    host=host,
                    port=port,
                    user=user,
                    password=password,
                    charset="utf8mb4",
                    collation="utf8mb4_unicode_ci",
                ) as connection:
                    with connection.cursor() as cursor:
                        cursor.execute(
                            f"CREATE DATABASE IF NOT EXISTS `{database_name}` "
                            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                        )
            except mysql.connector.Error as error:
                logger.error(
                    "Failed to create database %s on %s:%s: %s",
                    database_name,
                    host,
                    port,
                    error,
                )

            return func(*args, **kwargs)

        return wrapper

    return decorator


def get_configs(config_name: str, strict: bool = False, default_value: str = "") -> str:
    """Read a configuration value from the environment.

    Args:
        config_name: Environment variable name.
        strict: Raise instead of falling back when the value is missing.
        default_value: Value returned for a missing or empty variable.

    Raises:
        ConfigurationError: If ``strict`` is set and the value is missing or
            empty.
    """
    value = os.environ.get(config_name, "")
    if value.strip():
        return value

    if strict:
        logger.error("Configuration '%s' is missing or empty.", config_name)
        raise ConfigurationError(f"Configuration '{config_name}' is required.")
    return default_value


def get_bool_config(key: str, default_value: bool = False) -> bool:
    """Read a boolean flag such as ``true``, ``0`` or ``off``.

    Unrecognized values fall back to ``default_value``.
    """
    value = get_configs(key).strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    if value:
        logger.warning("Configuration '%s' is not a boolean: %s", key, value)
    return default_value


def get_int_config(key: str, default_value: int) -> int:
    """Read an integer configuration value.

    Raises:
        ConfigurationError: If the value is set but is not an integer.
    """
    value = get_configs(key)
    if not value:
        return default_value

    try:
        return int(value.strip())
    except ValueError as error:
        logger.error("Configuration '%s' is not an integer: %s", key, value)
        raise ConfigurationError(
            f"Configuration '{key}' must be an integer, got '{value}'."
        ) from error


def get_list_config(key: str, default_value: Optional[List[str]] = None) -> List[str]:
    """Read a comma-separated list, e.g. ``contact_form,test_ride``.

    Surrounding brackets and quotes are tolerated, so ``["a", "b"]`` works too.
    """
    value = get_configs(key)
    if not value:
        return list(default_value or [])

    items = value.strip().strip("[]").split(",")
    return [item.strip().strip("'\"") for item in items if item.strip()]


def set_configs(config_name: str, config_value: Any) -> None:
    """Set an environment configuration value.

    Booleans are written as ``true``/``false`` so they read back through
    :func:`get_bool_config`.

    Raises:
        ValueError: If config_name is empty.
    """
    if not config_name:
        raise ValueError(f"Cannot set configuration. Invalid config_name '{config_name}'.")

    if isinstance(config_value, bool):
        config_value = str(config_value).lower()
    os.environ[config_name] = str(config_value)


def mask_phone_number(phone_number: str) -> str:
    """Mask all but the last four digits of a phone number for logging."""
    if not phone_number or len(phone_number) <= 4:
        return phone_number
    return "*" * (len(phone_number) - 4) + phone_number[-4:]
