"""Tests for the WebP media downloader and its local cache."""

import tempfile
import unittest
from pathlib import Path

from PIL import Image

from exceptions import ConversionError, DownloadError
from fetchers.media_downloader import MediaDownloader, cache_key
from fakes import FakeSession, image_bytes


class TestMediaDownloader(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.url = 'https://assets.test/uploads/photo.png'
        self.session = FakeSession(content_by_url={self.url: image_bytes(size=(12, 7))})
        self.downloader = MediaDownloader(self.root / 'cache', session=self.session)

    def tearDown(self):
        self.tmp.cleanup()

    def test_download_converts_to_webp(self):
        result = self.downloader.download_and_convert(self.url)

        expected = self.root / 'cache' / 'assets' / 'images' / f"{cache_key(self.url)}.webp"
        self.assertEqual(Path(result.local_path), expected)
        self.assertEqual((result.width, result.height), (12, 7))
        self.assertFalse(result.from_cache)
        with Image.open(expected) as img:
            self.assertEqual(img.format, 'WEBP')
        self.assertEqual(self.downloader.get_stats(), {'downloaded': 1, 'cache_hits': 0})

    def test_repeat_in_same_run_is_memoized(self):
        first = self.downloader.download_and_convert(self.url)
        second = self.downloader.download_and_convert(self.url)
        self.assertIs(first, second)
        self.assertEqual(len(self.session.calls), 1)

    def test_cached_file_skips_network(self):
        self.downloader.download_and_convert(self.url)

        offline = FakeSession()
        downloader = MediaDownloader(self.root / 'cache', session=offline)
        result = downloader.download_and_convert(self.url)

        self.assertTrue(result.from_cache)
        self.assertEqual(offline.calls, [])
        self.assertEqual(downloader.get_stats(), {'downloaded': 0, 'cache_hits': 1})

    def test_unreadable_cache_entry_is_replaced(self):
        path = self.downloader.local_path_for(self.url)
        path.parent.mkdir(parents=True)
        path.write_bytes(b'not an image')

        result = self.downloader.download_and_convert(self.url)
        self.assertFalse(result.from_cache)
        self.assertEqual(self.downloader.stats['downloaded'], 1)

    def test_local_file_source(self):
        source = self.root / 'portrait.jpg'
        source.write_bytes(image_bytes(fmt='JPEG'))
        result = self.downloader.download_and_convert(str(source))
        self.assertTrue(Path(result.local_path).exists())
        self.assertEqual(self.session.calls, [])

    def test_palette_image_converted(self):
        url = 'https://assets.test/uploads/palette.gif'
        self.session.content_by_url[url] = image_bytes(color=3, fmt='GIF', mode='P')
        result = self.downloader.download_and_convert(url)
        self.assertTrue(Path(result.local_path).exists())

    def test_http_error(self):
        with self.assertRaises(DownloadError) as ctx:
            self.downloader.download_and_convert('https://assets.test/uploads/missing.png')
        self.assertEqual(ctx.exception.source_ref, 'https://assets.test/uploads/missing.png')

    def test_empty_body(self):
        url = 'https://assets.test/uploads/empty.png'
        self.session.content_by_url[url] = b''
        with self.assertRaises(DownloadError):
            self.downloader.download_and_convert(url)

    def test_missing_local_file(self):
        with self.assertRaises(DownloadError):
            self.downloader.download_and_convert(str(self.root / 'nope.png'))

    def test_undecodable_bytes(self):
        url = 'https://assets.test/uploads/broken.png'
        self.session.content_by_url[url] = b'definitely not an image'
        with self.assertRaises(ConversionError):
            self.downloader.download_and_convert(url)
        self.assertFalse(self.downloader.local_path_for(url).exists())


if __name__ == '__main__':
    unittest.main()
