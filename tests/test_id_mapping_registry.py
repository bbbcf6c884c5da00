"""Tests for the identifier mapping registry."""

import json
import tempfile
import unittest
from pathlib import Path

from exceptions import CheckpointError, MappingConflictError
from importers.id_mapping_registry import (
    MAPPINGS_FILENAME,
    MEDITATION_TITLE_ALIASES,
    IdMappingRegistry,
    normalize_title,
    resolve_by_natural_key,
)


class TestIdMappingRegistry(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cache_dir = Path(self.tmp.name)
        self.registry = IdMappingRegistry()

    def tearDown(self):
        self.tmp.cleanup()

    def test_numeric_kinds_coerce_keys(self):
        self.registry.set('authors', '5', 'a5')
        self.assertEqual(self.registry.get('authors', 5), 'a5')
        self.assertEqual(self.registry.map_for('authors'), {5: 'a5'})

    def test_string_kinds_keep_keys(self):
        self.registry.set('media', 'https://x.test/a.jpg', 'm1')
        self.assertEqual(self.registry.get('media', 'https://x.test/a.jpg'), 'm1')
        self.assertIsNone(self.registry.get('media', 'https://x.test/b.jpg'))

    def test_resetting_same_value_is_noop(self):
        self.registry.set('forms', 'contact', 'f1')
        self.registry.set('forms', 'contact', 'f1')
        self.assertEqual(self.registry.get('forms', 'contact'), 'f1')

    def test_conflicting_value_raises(self):
        self.registry.set('articles', 1, 'p1')
        with self.assertRaises(MappingConflictError) as ctx:
            self.registry.set('articles', 1, 'p2')
        self.assertEqual(ctx.exception.existing, 'p1')
        self.assertEqual(self.registry.get('articles', 1), 'p1')

    def test_unknown_kind(self):
        with self.assertRaises(KeyError):
            self.registry.set('widgets', 1, 'w1')

    def test_non_numeric_lookup_returns_none(self):
        self.assertIsNone(self.registry.get('categories', None))
        self.assertIsNone(self.registry.get('categories', 'abc'))

    def test_save_and_load(self):
        self.registry.set('treatments', 3, 't3')
        self.registry.set('external_videos', '555', 'v1')
        self.registry.save(self.cache_dir)

        with open(self.cache_dir / MAPPINGS_FILENAME, encoding='utf-8') as f:
            data = json.load(f)
        self.assertEqual(data['treatments'], {'3': 't3'})

        restored = IdMappingRegistry()
        self.assertTrue(restored.load(self.cache_dir))
        self.assertEqual(restored.get('treatments', 3), 't3')
        self.assertEqual(restored.map_for('treatments'), {3: 't3'})
        self.assertEqual(restored.get('external_videos', '555'), 'v1')

    def test_load_without_file(self):
        self.assertFalse(self.registry.load(self.cache_dir))

    def test_load_malformed_file(self):
        (self.cache_dir / MAPPINGS_FILENAME).write_text('{not json', encoding='utf-8')
        with self.assertRaises(CheckpointError):
            self.registry.load(self.cache_dir)

        (self.cache_dir / MAPPINGS_FILENAME).write_text('[]', encoding='utf-8')
        with self.assertRaises(CheckpointError):
            self.registry.load(self.cache_dir)

    def test_unknown_kind_in_file_ignored(self):
        self.registry.deserialize({'widgets': {'1': 'w'}, 'authors': {'2': 'a2'}})
        self.assertEqual(self.registry.get('authors', 2), 'a2')

    def test_clear(self):
        self.registry.set('authors', 1, 'a1')
        self.registry.meditation_title_map['x'] = 'm'
        self.registry.clear()
        self.assertEqual(self.registry.get_statistics()['authors'], 0)
        self.assertEqual(self.registry.meditation_title_map, {})


class TestResolveByNaturalKey(unittest.TestCase):
    def setUp(self):
        self.titles = {1: 'inner silence', 2: 'self realization', 3: 'unmapped'}
        self.destinations = {'inner silence': 'm1', 'self-realization': 'm2'}

    def resolve(self, source_id):
        return resolve_by_natural_key(source_id, self.titles, self.destinations, MEDITATION_TITLE_ALIASES)

    def test_direct_title(self):
        self.assertEqual(self.resolve(1), 'm1')
        self.assertEqual(self.resolve('1'), 'm1')

    def test_alias(self):
        self.assertEqual(self.resolve(2), 'm2')

    def test_unresolved(self):
        self.assertIsNone(self.resolve(3))
        self.assertIsNone(self.resolve(42))
        self.assertIsNone(self.resolve('abc'))
        self.assertIsNone(self.resolve(None))

    def test_normalize_title(self):
        self.assertEqual(normalize_title('  Inner Silence '), 'inner silence')
        self.assertEqual(normalize_title(None), '')


if __name__ == '__main__':
    unittest.main()
