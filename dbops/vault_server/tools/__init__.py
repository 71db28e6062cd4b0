"""
CLI tools for vault administration.

This module provides command-line tools for:
- vault: manual and automated backups, backup listing, health report
- restore: replace collections from an exported or stored backup

Invariants:
    - Tools exit non-zero only for setup errors
    - All operations are logged
"""
