"""Tests for the command-line entry point."""

import argparse
import logging
import unittest
from unittest import mock

import migrate
from exceptions import MigrationError


def args(**overrides):
    values = dict(resume=False, reset=False, clear_cache=False, dry_run=False)
    values.update(overrides)
    return argparse.Namespace(**values)


class TestArgumentParser(unittest.TestCase):
    def test_flags(self):
        parsed = migrate.create_argument_parser().parse_args(
            ['--resume', '--dry-run', '--cache-dir', '/tmp/c', '--no-progress', '-vv']
        )
        self.assertTrue(parsed.resume)
        self.assertTrue(parsed.dry_run)
        self.assertFalse(parsed.reset)
        self.assertEqual(parsed.cache_dir, '/tmp/c')
        self.assertTrue(parsed.no_progress)
        self.assertEqual(parsed.verbose, 2)
        self.assertIsNone(parsed.config)

    def test_invalid_log_level_rejected(self):
        with self.assertRaises(SystemExit):
            migrate.create_argument_parser().parse_args(['--log-level', 'LOUD'])


class TestRunMigration(unittest.TestCase):
    def setUp(self):
        self.logger = logging.getLogger('wemeditate_migrator.tests')
        self.report = {'summary': {'phase': 'done', 'failures': 0, 'items_created': 3}}

    @mock.patch('migrate.MigrationOrchestrator')
    def test_success(self, orchestrator_cls):
        orchestrator_cls.return_value.run.return_value = self.report
        with mock.patch('builtins.print'):
            code = migrate.run_migration({}, args(resume=True), self.logger)
        self.assertEqual(code, migrate.EXIT_OK)
        orchestrator_cls.return_value.run.assert_called_once_with(
            resume=True, reset=False, clear_cache=False, dry_run=False
        )

    @mock.patch('migrate.MigrationOrchestrator')
    def test_migration_error(self, orchestrator_cls):
        orchestrator_cls.return_value.run.side_effect = MigrationError('boom')
        with mock.patch('builtins.print'):
            code = migrate.run_migration({}, args(), self.logger)
        self.assertEqual(code, migrate.EXIT_FAILED)

    @mock.patch('migrate.MigrationOrchestrator')
    def test_interrupt(self, orchestrator_cls):
        orchestrator_cls.return_value.run.side_effect = KeyboardInterrupt()
        code = migrate.run_migration({}, args(), self.logger)
        self.assertEqual(code, migrate.EXIT_INTERRUPTED)


class TestMain(unittest.TestCase):
    def test_missing_config_file(self):
        with mock.patch('sys.argv', ['migrate.py', '--config', '/nonexistent/config.yaml']), \
                mock.patch('builtins.print'):
            self.assertEqual(migrate.main(), migrate.EXIT_CONFIG)

    def test_invalid_configuration(self):
        with mock.patch('sys.argv', ['migrate.py']), \
                mock.patch('migrate.ConfigLoader.load', return_value={'payload': {}, 'migration': {}}), \
                mock.patch('builtins.print'):
            self.assertEqual(migrate.main(), migrate.EXIT_CONFIG)


if __name__ == '__main__':
    unittest.main()
