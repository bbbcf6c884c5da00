"""Tests for media ingestion and filename-based deduplication."""

import tempfile
import unittest
from pathlib import Path

from exceptions import DestinationStoreError, DownloadError
from fetchers.media_downloader import MediaDownloader, cache_key
from importers.media_uploader import MediaUploader, filename_pattern
from models import MediaMetadata
from fakes import FakePayloadClient, FakeSession, image_bytes

URL = 'https://assets.test/uploads/lotus.png'


class TestFilenamePattern(unittest.TestCase):
    def test_matches_exact_and_suffixed_names(self):
        pattern = filename_pattern('abc.webp')
        self.assertTrue(pattern.match('abc.webp'))
        self.assertTrue(pattern.match('abc-x7k2.webp'))
        self.assertTrue(pattern.match('ABC.WEBP'))

    def test_rejects_other_names(self):
        pattern = filename_pattern('abc.webp')
        self.assertFalse(pattern.match('abcd.webp'))
        self.assertFalse(pattern.match('xabc.webp'))
        self.assertFalse(pattern.match('abc-x7k2.png'))
        self.assertFalse(pattern.match('abc-x_2.webp'))


class TestMediaUploader(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.session = FakeSession(content_by_url={URL: image_bytes()})
        self.downloader = MediaDownloader(Path(self.tmp.name), session=self.session)
        self.client = FakePayloadClient()
        self.filename = f"{cache_key(URL)}.webp"

    def tearDown(self):
        self.tmp.cleanup()

    def uploader(self, tag_ids=('tag-1',)):
        return MediaUploader(self.client, self.downloader, tag_ids=list(tag_ids))

    def test_first_ingest_uploads(self):
        uploader = self.uploader()
        result = uploader.ingest(URL, MediaMetadata(alt='Lotus', credit='WeMeditate'))

        self.assertFalse(result.was_reused)
        self.assertEqual(result.filename, self.filename)
        doc = self.client.find_by_id('media', result.id)
        self.assertEqual(doc['alt'], 'Lotus')
        self.assertEqual(doc['credit'], 'WeMeditate')
        self.assertEqual(doc['tags'], ['tag-1'])
        self.assertEqual(uploader.get_stats()['uploaded'], 1)
        self.assertEqual(uploader.get_stats()['downloaded'], 1)

    def test_repeat_reference_answered_from_memory(self):
        uploader = self.uploader()
        first = uploader.ingest(URL)
        second = uploader.ingest(URL)

        self.assertEqual(first.id, second.id)
        self.assertTrue(second.was_reused)
        self.assertEqual(len(self.client.docs('media')), 1)
        self.assertEqual(uploader.stats, {'uploaded': 1, 'reused': 1})

    def test_existing_document_reused_across_runs(self):
        first = self.uploader().ingest(URL)

        second_run = self.uploader(tag_ids=('tag-2',))
        result = second_run.ingest(URL)

        self.assertTrue(result.was_reused)
        self.assertEqual(result.id, first.id)
        self.assertEqual(len(self.client.docs('media')), 1)
        self.assertEqual(self.client.find_by_id('media', first.id)['tags'], ['tag-1', 'tag-2'])
        self.assertEqual(second_run.stats, {'uploaded': 0, 'reused': 1})

    def test_suffixed_name_reused(self):
        stem = cache_key(URL)
        self.client.seed('media', {'id': 'm-9', 'filename': f'{stem}-x7k2.webp', 'tags': ['tag-1']})

        result = self.uploader().ingest(URL)
        self.assertTrue(result.was_reused)
        self.assertEqual(result.id, 'm-9')
        self.assertEqual(result.filename, f'{stem}-x7k2.webp')

    def test_lookalike_name_not_reused(self):
        stem = cache_key(URL)
        self.client.seed('media', {'id': 'm-9', 'filename': f'{stem}_copy.webp'})

        with self.assertLogs('wemeditate_migrator.importers.media_uploader', level='WARNING'):
            result = self.uploader().ingest(URL)
        self.assertFalse(result.was_reused)
        self.assertEqual(len(self.client.docs('media')), 2)

    def test_tag_merge_failure_is_not_fatal(self):
        first = self.uploader().ingest(URL)
        self.client.failures[('update', 'media')] = DestinationStoreError('nope', status_code=500)

        result = self.uploader(tag_ids=('tag-2',)).ingest(URL)
        self.assertEqual(result.id, first.id)

    def test_upload_failure_propagates(self):
        self.client.failures[('create', 'media')] = DestinationStoreError('rejected', status_code=413)
        with self.assertRaises(DestinationStoreError):
            self.uploader().ingest(URL)

    def test_download_failure_propagates(self):
        with self.assertRaises(DownloadError):
            self.uploader().ingest('https://assets.test/uploads/missing.png')
        self.assertEqual(self.client.docs('media'), [])


if __name__ == '__main__':
    unittest.main()
