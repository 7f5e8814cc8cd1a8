"""Logging adapters: structlog setup, execution records, progress channel."""

from sfa.infrastructure.logging.execution_log import NullExecutionLog, StructlogExecutionLog, record_execution
from sfa.infrastructure.logging.progress import StderrProgress, emit_progress
from sfa.infrastructure.logging.setup import configure_logging

__all__ = [
    "NullExecutionLog",
    "StderrProgress",
    "StructlogExecutionLog",
    "configure_logging",
    "emit_progress",
    "record_execution",
]
