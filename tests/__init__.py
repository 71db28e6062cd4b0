"""
Vault Test Suite.

This package contains:
- unit/: Unit tests (in-memory store, no external services)
- integration/: Integration tests (SQLite store, full service and CLI)
"""
