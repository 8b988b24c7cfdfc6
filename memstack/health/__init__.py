"""
Aggregate health reporting for the memory service stack.
"""

from .monitor import CheckResult, HealthCheck, HealthMonitor, HealthReport

__all__ = ["CheckResult", "HealthCheck", "HealthMonitor", "HealthReport"]
