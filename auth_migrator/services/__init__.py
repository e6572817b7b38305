"""Database access for Synapse and MAS, plus identifier and provider handling."""

__all__ = [
    "identifiers",
    "providers",
    "source",
    "target",
]
