"""
Resolution of operator-supplied upstream provider mappings.

Synapse names its SSO/OIDC providers with free-form strings, MAS with
ULIDs.  The operator bridges the two with ``--upstream_provider_mapping
<synapse name>:<MAS provider id>``; every mapping is checked against the
MAS database once, before any user is migrated.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Mapping

from auth_migrator.exceptions import (
    InvalidMappingFormatError,
    MalformedIdentifierError,
    UnknownProviderError,
)
from auth_migrator.services.identifiers import MigratedId, parse_external_id
from auth_migrator.services.target import TargetWriter
from auth_migrator.types import UpstreamOAuthProvider
from auth_migrator.utils.logging import log_with_context


def parse_provider_mapping(mapping: str) -> tuple[str, MigratedId]:
    """Split ``<source name>:<provider id>`` on its first colon.

    Raises:
        InvalidMappingFormatError: If either side is empty or the right-hand
            side is not a ULID/UUID.
    """
    source_name, sep, provider_text = mapping.partition(":")
    if not sep or not source_name or not provider_text:
        raise InvalidMappingFormatError(
            f"Invalid upstream provider mapping '{mapping}': "
            "expected <synapse provider>:<MAS provider id>"
        )
    try:
        provider_id = parse_external_id(provider_text)
    except MalformedIdentifierError as e:
        raise InvalidMappingFormatError(
            f"Invalid upstream provider mapping '{mapping}': {e}"
        ) from e
    return source_name, provider_id


def resolve_provider_mappings(
    mappings: Iterable[str], target: TargetWriter
) -> Mapping[str, UpstreamOAuthProvider]:
    """Resolve every mapping against the MAS ``upstream_oauth_providers`` table.

    Args:
        mappings: Raw mapping strings from the command line
        target: Access to the MAS database

    Returns:
        A read-only mapping of Synapse provider name to MAS provider

    Raises:
        InvalidMappingFormatError: If a mapping string is malformed
        UnknownProviderError: If a mapped provider does not exist in MAS
    """
    resolved: dict[str, UpstreamOAuthProvider] = {}
    for mapping in mappings:
        source_name, provider_id = parse_provider_mapping(mapping)
        provider = target.find_provider(provider_id)
        if provider is None:
            raise UnknownProviderError(
                f"Upstream provider {provider_id.ulid} ({provider_id.uuid}) "
                f"mapped from '{source_name}' does not exist in MAS"
            )
        if source_name in resolved:
            log_with_context(
                logging.WARNING,
                f"Provider '{source_name}' is mapped more than once; "
                f"using {provider_id.ulid}",
            )
        resolved[source_name] = provider
        log_with_context(
            logging.INFO,
            f"Mapping upstream provider '{source_name}' to {provider_id.ulid}"
            + (f" ({provider.human_name})" if provider.human_name else ""),
        )
    return MappingProxyType(resolved)
