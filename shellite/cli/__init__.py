"""
Shellite CLI.

Usage:
    shellite <database> [sql]
"""

__version__ = "0.1.0"
__cli_name__ = "shellite"
