"""
Migration report generator.

Aggregates the checkpoint record, per-phase row counters and media
statistics into one dictionary, formatted for the console and exported as
JSON.
"""

import json
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from models import CheckpointRecord

logger = logging.getLogger('wemeditate_migrator.orchestrator.report')

# Failures listed on the console; the JSON export keeps all of them
CONSOLE_FAILURE_LIMIT = 20


class MigrationReport:
    """Builds the end-of-run summary."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize migration report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('wemeditate_migrator.orchestrator.report')

    def generate_report(
        self,
        record: CheckpointRecord,
        phase_stats: Dict[str, Dict[str, int]],
        media_stats: Dict[str, int],
        duration: float,
        conversion_warnings: int = 0,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Generate the migration report.

        Args:
            record: Checkpoint record at the end of the run
            phase_stats: Row counters per phase (total, created, skipped, failed)
            media_stats: Uploader and downloader counters
            duration: Run duration in seconds
            conversion_warnings: Warnings raised while converting content
            dry_run: Whether this was a connectivity-only run

        Returns:
            Migration report dictionary
        """
        items_by_kind = Counter(key.split('-', 1)[0] for key in record.items_created)

        report = {
            'summary': {
                'phase': record.phase,
                'dry_run': dry_run,
                'items_created': len(record.items_created),
                'failures': len(record.failed),
                'conversion_warnings': conversion_warnings,
                'duration': duration,
                'duration_formatted': self._format_duration(duration),
            },
            'items_by_kind': dict(sorted(items_by_kind.items())),
            'phases': phase_stats,
            'media': dict(media_stats),
            'failed': list(record.failed),
            'timestamp': datetime.now().isoformat(),
        }

        self.logger.info(
            f"Report generated: {report['summary']['items_created']} items, "
            f"{report['summary']['failures']} failures"
        )
        return report

    @staticmethod
    def _format_duration(seconds: float) -> str:
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes, seconds = divmod(int(seconds), 60)
        if minutes < 60:
            return f"{minutes}m {seconds}s"
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h {minutes}m {seconds}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Migration report dictionary

        Returns:
            Formatted console string
        """
        summary = report.get('summary', {})
        sections = [
            "=" * 60,
            "MIGRATION REPORT" + (" (DRY RUN)" if summary.get('dry_run') else ""),
            "=" * 60,
            "",
            "Summary:",
            f"  Phase:       {summary.get('phase', 'unknown')}",
            f"  Created:     {summary.get('items_created', 0)}",
            f"  Failures:    {summary.get('failures', 0)}",
            f"  Duration:    {summary.get('duration_formatted', '0s')}",
        ]
        if summary.get('conversion_warnings'):
            sections.append(f"  Warnings:    {summary['conversion_warnings']}")
        sections.append("")

        items = report.get('items_by_kind', {})
        if items:
            sections.append("Items by kind:")
            sections.append("-" * 60)
            for kind, count in items.items():
                sections.append(f"  {kind:<24} {count}")
            sections.append("")

        phases = report.get('phases', {})
        if phases:
            sections.append("Phase Breakdown:")
            sections.append("-" * 60)
            for name, stats in phases.items():
                sections.append(
                    f"  {name:<24} {stats.get('created', 0)} created, "
                    f"{stats.get('skipped', 0)} skipped, {stats.get('failed', 0)} failed"
                )
            sections.append("")

        media = report.get('media', {})
        if media:
            sections.append("Media:")
            sections.append(
                f"  {media.get('uploaded', 0)} uploaded, {media.get('reused', 0)} reused, "
                f"{media.get('downloaded', 0)} downloaded, {media.get('cache_hits', 0)} cache hits"
            )
            sections.append("")

        failed = report.get('failed', [])
        if failed:
            sections.append(f"Failed operations ({len(failed)}):")
            for message in failed[:CONSOLE_FAILURE_LIMIT]:
                sections.append(f"  - {message}")
            if len(failed) > CONSOLE_FAILURE_LIMIT:
                sections.append(f"  ... and {len(failed) - CONSOLE_FAILURE_LIMIT} more")
            sections.append("")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Migration report dictionary
            filepath: Output file path
        """
        try:
            path = Path(filepath)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)
            self.logger.info(f"JSON report exported to {filepath}")
        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {e}")


__all__ = ['MigrationReport']
