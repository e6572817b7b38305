"""
Configuration module for the Synapse to MAS authentication migrator.

The migrator reads two YAML documents: the Synapse homeserver configuration
(for the source database) and the MAS configuration (for the target
database and optional migration tuning).  Only the ``database`` sections
(and the target's optional ``migration`` section) are interpreted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import yaml
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from auth_migrator.exceptions import ConfigError
from auth_migrator.utils.logging import log_with_context

DEFAULT_STREAM_BATCH_SIZE = 1000

# Synapse ``database.name`` values mapped to SQLAlchemy driver names
SYNAPSE_DATABASE_DRIVERS = {
    "sqlite3": "sqlite",
    "psycopg2": "postgresql+psycopg2",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for one database."""

    url: URL

    @property
    def display_url(self) -> str:
        """The URL with its password hidden, safe to log."""
        return self.url.render_as_string(hide_password=True)

    @classmethod
    def from_synapse_dict(cls, data: dict[str, Any]) -> DatabaseConfig:
        """Build from the ``database`` section of a homeserver.yaml."""
        name = data.get("name", "sqlite3")
        args = data.get("args") or {}
        driver = SYNAPSE_DATABASE_DRIVERS.get(name)
        if driver is None:
            raise ConfigError(
                f"Unsupported Synapse database engine '{name}'; "
                f"expected one of {sorted(SYNAPSE_DATABASE_DRIVERS)}"
            )

        if driver == "sqlite":
            database = args.get("database")
            if not database:
                raise ConfigError("Synapse sqlite3 database needs args.database")
            return cls(url=URL.create("sqlite", database=str(database)))

        port = args.get("port")
        return cls(
            url=URL.create(
                driver,
                username=args.get("user"),
                password=args.get("password"),
                host=args.get("host"),
                port=int(port) if port else None,
                database=args.get("database") or args.get("dbname"),
            )
        )

    @classmethod
    def from_mas_dict(cls, data: dict[str, Any]) -> DatabaseConfig:
        """Build from the ``database`` section of a MAS config.yaml."""
        uri = data.get("uri")
        if uri:
            try:
                return cls(url=make_url(uri))
            except ArgumentError as e:
                raise ConfigError(f"Invalid MAS database uri: {e}") from e

        port = data.get("port")
        return cls(
            url=URL.create(
                "postgresql+psycopg2",
                username=data.get("username"),
                password=data.get("password"),
                host=data.get("host"),
                port=int(port) if port else None,
                database=data.get("database"),
            )
        )


@dataclass(frozen=True)
class MigrationConfig:
    """Typed configuration for one migration run."""

    source_database: DatabaseConfig
    target_database: DatabaseConfig
    stream_batch_size: int = DEFAULT_STREAM_BATCH_SIZE

    @classmethod
    def from_dicts(
        cls, source: dict[str, Any], target: dict[str, Any]
    ) -> MigrationConfig:
        """Create a MigrationConfig from the two raw configuration documents."""
        if not isinstance(source.get("database"), dict):
            raise ConfigError("Synapse configuration has no 'database' section")
        if not isinstance(target.get("database"), dict):
            raise ConfigError("MAS configuration has no 'database' section")

        migration = target.get("migration") or {}
        batch_size = migration.get("stream_batch_size", DEFAULT_STREAM_BATCH_SIZE)
        if not isinstance(batch_size, int) or batch_size <= 0:
            raise ConfigError(
                f"migration.stream_batch_size must be a positive integer, got {batch_size!r}"
            )

        return cls(
            source_database=DatabaseConfig.from_synapse_dict(source["database"]),
            target_database=DatabaseConfig.from_mas_dict(target["database"]),
            stream_batch_size=batch_size,
        )


def load_yaml_document(path: Union[str, Path]) -> dict[str, Any]:
    """
    Load one YAML configuration document.

    Args:
        path: Path to the YAML file

    Returns:
        The parsed document (an empty dict for an empty file)

    Raises:
        ConfigError: If the file is missing, unreadable, or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file {path} not found")
    try:
        with open(path) as f:
            loaded = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Failed to load config file {path}: {e}") from e

    # Handle None result from empty file
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a YAML mapping")
    return loaded


def load_config(
    source_config_path: Union[str, Path], target_config_path: Union[str, Path]
) -> MigrationConfig:
    """
    Load the Synapse and MAS configuration files.

    Args:
        source_config_path: Path to the Synapse homeserver.yaml
        target_config_path: Path to the MAS config.yaml

    Returns:
        MigrationConfig describing both databases
    """
    source = load_yaml_document(source_config_path)
    target = load_yaml_document(target_config_path)
    config = MigrationConfig.from_dicts(source, target)

    log_with_context(
        logging.INFO,
        f"Loaded configuration from {source_config_path} and {target_config_path}",
    )
    log_with_context(
        logging.DEBUG,
        f"Source database: {config.source_database.display_url}; "
        f"target database: {config.target_database.display_url}",
    )
    return config
