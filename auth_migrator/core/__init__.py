"""Core migration logic including configuration, transformation and orchestration."""

__all__ = [
    "config",
    "context",
    "migration_logging",
    "migrator",
    "pipeline",
    "safety",
    "schema",
    "state",
    "transform",
]
