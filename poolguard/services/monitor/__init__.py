"""Pool Monitor 서비스."""

from .app import create_monitor_app
from .checker import PoolHealthMonitor
from .evaluator import Finding, PoolReading, build_verdict

__all__ = ["PoolHealthMonitor", "create_monitor_app", "Finding", "PoolReading", "build_verdict"]
