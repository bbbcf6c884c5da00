#!/usr/bin/env python3
"""
WeMeditate to Payload Migration Tool - Main CLI Entry Point

Imports authors, categories, pages, media, forms and external videos from
the legacy WeMeditate PostgreSQL database into a Payload CMS instance, and
converts page content to Payload rich text.
"""

import argparse
import logging
import os
import sys

import yaml

from config_loader import ConfigLoader
from exceptions import ConfigurationError, MigrationError
from logger import LOGGER_NAME, log_config, log_section, setup_logging
from orchestrator import MigrationOrchestrator, MigrationReport

# Version
__version__ = "1.0.0"

LOG_FILENAME = 'import.log'

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Migrate WeMeditate content into Payload CMS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full import
  python migrate.py --config config.yaml

  # Check connectivity only
  python migrate.py --dry-run

  # Continue an interrupted import
  python migrate.py --resume

  # Start over, deleting previously imported documents
  python migrate.py --reset --clear-cache

  # Verbose logging
  python migrate.py -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file (default: config.yaml when present)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate Payload and database connectivity without writing anything'
    )

    parser.add_argument(
        '--reset',
        action='store_true',
        help='Delete previously imported documents and local state before importing'
    )

    parser.add_argument(
        '--resume',
        action='store_true',
        help='Load the checkpoint and ID mappings and continue from there'
    )

    parser.add_argument(
        '--clear-cache',
        action='store_true',
        help='Wipe the local cache directory (downloaded media, checkpoint, mappings)'
    )

    parser.add_argument(
        '--cache-dir',
        type=str,
        help='Override migration.cache_dir'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write the JSON migration report to this path'
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Explicit log level (overrides -v)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def run_migration(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Run the orchestrator and print its report."""
    orchestrator = MigrationOrchestrator(config)

    try:
        report = orchestrator.run(
            resume=args.resume,
            reset=args.reset,
            clear_cache=args.clear_cache,
            dry_run=args.dry_run,
        )
    except KeyboardInterrupt:
        logger.error("Migration interrupted by user, rerun with --resume to continue")
        return EXIT_INTERRUPTED
    except MigrationError as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        print("Fix the problem and rerun with --resume to continue", file=sys.stderr)
        return EXIT_FAILED

    print("\n" + MigrationReport(logger).format_console_report(report))

    failures = report['summary']['failures']
    if failures:
        logger.warning(f"Migration completed with {failures} logged failures")
    else:
        logger.info("Migration completed successfully")
    return EXIT_OK


def main() -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args()

    try:
        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        log_file = config['logging'].get('file') or os.path.join(
            config['migration']['cache_dir'], LOG_FILENAME
        )
        setup_logging(
            verbosity=args.verbose,
            log_file=log_file,
            level=config['logging'].get('level'),
        )
        logger = logging.getLogger(LOGGER_NAME)

        log_section("WeMeditate to Payload Migration")
        logger.info(f"Version: {__version__}")
        log_config(config)

        return run_migration(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except (ConfigurationError, yaml.YAMLError, ValueError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
