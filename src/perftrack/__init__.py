"""perftrack - Business-day performance tracking and automated evaluation."""

__version__ = "0.1.0"
__author__ = "perftrack Team"

from .domain import (
    TaskStatus,
    PerformanceRecord,
)

__all__ = ["TaskStatus", "PerformanceRecord", "__version__"]
