"""Immutable migration context.

MigrationContext is a frozen dataclass holding the run mode and the resolved
provider mappings. It is created once, after the pre-flight check, and
shared read-only with the per-user pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from auth_migrator.types import UpstreamOAuthProvider


@dataclass(frozen=True)
class MigrationContext:
    """Immutable context for a migration run. Created once, shared everywhere."""

    dry_run: bool = False

    # Synapse provider name -> MAS provider, resolved before the first user
    provider_mapping: Mapping[str, UpstreamOAuthProvider] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def log_prefix(self) -> str:
        """Mode-aware log prefix, ``"[DRY RUN] "`` or empty."""
        return "[DRY RUN] " if self.dry_run else ""
