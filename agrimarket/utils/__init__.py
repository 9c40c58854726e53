"""
Utility modules for the trading engine.

Logging setup, the order audit trail and performance monitoring.
"""

from .logger import setup_logging, get_logger, create_audit_logger, log_order_audit
from .performance import PerformanceMonitor, measure_latency, get_performance_monitor

__all__ = [
    "setup_logging",
    "get_logger",
    "create_audit_logger",
    "log_order_audit",
    "PerformanceMonitor",
    "measure_latency",
    "get_performance_monitor",
]
