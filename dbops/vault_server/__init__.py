"""
Vault Server - Backup, restore and health reporting for a document store.

This package protects an operational document store against loss by:
- Capturing full snapshots of a fixed set of collections
- Keeping a bounded history (7 daily plus 1 monthly)
- Restoring any snapshot on demand, with a dry-run mode
- Reporting backup health and reliability

Architecture:
    ┌──────────────┐     ┌──────────────┐     ┌──────────────┐
    │  CLI / cron  │────▶│ VaultService │────▶│  Snapshotter │
    └──────────────┘     └──────┬───────┘     └──────┬───────┘
                                │                    ▼
         ┌──────────────────────┼──────────┐  ┌──────────────┐
         │                      │          │  │ BackupStore  │
         ▼                      ▼          ▼  └──────┬───────┘
    ┌──────────┐        ┌───────────┐ ┌───────────┐  │
    │ Restorer │        │  Health   │ │ Retention │  │
    └────┬─────┘        │  Monitor  │ │ Enforcer  │  │
         │              └─────┬─────┘ └─────┬─────┘  │
         ▼                    ▼             ▼        ▼
    ┌─────────────────────────────────────────────────────┐
    │        Document store (collections + history)       │
    └─────────────────────────────────────────────────────┘

Invariants:
    - A snapshot's status changes exactly once after it starts
    - Retention only ever deletes completed snapshots
    - Restore validates the whole source before touching any collection
    - Partial per-collection failures never fail a run

How to change safely:
    - Add datasets in datasets.py, never as ambient globals
    - Keep the snapshot document format backward compatible
"""

from ._version import __version__

__all__ = ["__version__"]
