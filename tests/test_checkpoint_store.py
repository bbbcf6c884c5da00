"""Tests for the checkpoint store."""

import json
import tempfile
import unittest
from pathlib import Path

from exceptions import CheckpointError
from importers.checkpoint_store import STATE_FILENAME, CheckpointStore
from models import CheckpointRecord, MigrationPhase, PageKind, work_item_key


class TestCheckpointStore(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cache_dir = Path(self.tmp.name) / 'cache'
        self.store = CheckpointStore(self.cache_dir)

    def tearDown(self):
        self.tmp.cleanup()

    def test_load_without_file(self):
        self.assertIsNone(self.store.load())
        self.assertEqual(self.store.record.phase, MigrationPhase.INITIALIZING.value)

    def test_save_uses_wire_names(self):
        self.store.add_item(work_item_key('authors', 1), 'a1')
        self.store.add_failed('Error importing author 2: boom')
        self.store.save()

        with open(self.cache_dir / STATE_FILENAME, encoding='utf-8') as f:
            data = json.load(f)
        self.assertEqual(data['itemsCreated'], {'authors-1': 'a1'})
        self.assertEqual(data['failed'], ['Error importing author 2: boom'])
        self.assertEqual(data['phase'], 'initializing')
        self.assertIn('lastUpdated', data)
        self.assertFalse((self.cache_dir / (STATE_FILENAME + '.tmp')).exists())

    def test_round_trip(self):
        self.store.add_item('media-https://x.test/a.jpg', 'm1')
        self.store.set_phase(PageKind.ARTICLES.content_phase)

        restored = CheckpointStore(self.cache_dir)
        record = restored.load()
        self.assertEqual(record.phase, 'updating-articles-content')
        self.assertTrue(restored.has_item('media-https://x.test/a.jpg'))
        self.assertEqual(restored.get_item('media-https://x.test/a.jpg'), 'm1')

    def test_set_phase_persists_immediately(self):
        self.store.set_phase(MigrationPhase.IMPORTING_MEDIA.value)
        with open(self.cache_dir / STATE_FILENAME, encoding='utf-8') as f:
            self.assertEqual(json.load(f)['phase'], 'importing-media')

    def test_corrupt_file(self):
        self.cache_dir.mkdir(parents=True)
        (self.cache_dir / STATE_FILENAME).write_text('{"phase": ', encoding='utf-8')
        with self.assertRaises(CheckpointError):
            self.store.load()

    def test_non_object_file(self):
        self.cache_dir.mkdir(parents=True)
        (self.cache_dir / STATE_FILENAME).write_text('[1, 2]', encoding='utf-8')
        with self.assertRaises(CheckpointError):
            self.store.load()

    def test_reset(self):
        self.store.add_item('authors-1', 'a1')
        self.store.set_phase('done')
        self.store.reset()

        restored = CheckpointStore(self.cache_dir)
        record = restored.load()
        self.assertEqual(record.items_created, {})
        self.assertEqual(record.phase, 'initializing')


class TestCheckpointRecord(unittest.TestCase):
    def test_from_dict_defaults(self):
        record = CheckpointRecord.from_dict({})
        self.assertEqual(record.phase, 'initializing')
        self.assertEqual(record.items_created, {})
        self.assertEqual(record.failed, [])

    def test_from_dict_stringifies_ids(self):
        record = CheckpointRecord.from_dict({'itemsCreated': {'authors-1': 17}})
        self.assertEqual(record.items_created, {'authors-1': '17'})

    def test_page_kind_phases(self):
        self.assertEqual(PageKind.STATIC_PAGES.importing_phase, 'importing-static_pages')
        self.assertEqual(PageKind.TREATMENTS.translations_table, 'treatment_translations')
        self.assertEqual(PageKind.SUBTLE_SYSTEM_NODES.foreign_key, 'subtle_system_node_id')
        self.assertIsNone(PageKind.PROMO_PAGES.translations_table)


if __name__ == '__main__':
    unittest.main()
