"""
LDIF Import - Bulk-load directory entries from LDIF files into an LDAP server.

This package reads LDIF records one at a time, adds each entry to the directory,
and reports per-entry results without stopping on individual failures.
"""

__version__ = "1.0.0"
__author__ = "LDIF Import Team"
