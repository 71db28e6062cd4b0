"""
Health module for the vault server.

Reports on backup recency, integrity, retention and schedule adherence.
"""

from .monitor import CHECK_NAMES, HealthMonitor, format_bytes, reliability

__all__ = ["CHECK_NAMES", "HealthMonitor", "format_bytes", "reliability"]
