#!/usr/bin/env python3
"""
Main execution module for the Synapse to MAS authentication migrator
"""

from auth_migrator.cli.commands import main

if __name__ == "__main__":
    main()
