#!/usr/bin/env python3
"""
Synapse to Matrix Authentication Service migration tool
"""

__version__ = "0.1.0"

# Import CLI utilities
from auth_migrator.cli.report import generate_report
from auth_migrator.core.config import MigrationConfig, load_config

# Import the main classes and functions for easier access
from auth_migrator.core.migrator import AuthMigrator
from auth_migrator.core.state import RunSummary
