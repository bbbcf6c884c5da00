"""
Orchestration package for the WeMeditate to Payload migration.

This package sequences the migration phases (metadata import, media
ingestion, content conversion) and builds the end-of-run report.
"""

from .migration_orchestrator import MigrationOrchestrator
from .migration_report import MigrationReport
from .row_processor import FailurePolicy, process_rows

__all__ = [
    'MigrationOrchestrator',
    'MigrationReport',
    'FailurePolicy',
    'process_rows',
]
