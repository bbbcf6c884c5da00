"""Fetchers package: legacy database rows, media bytes and content references."""

from .content_scanner import ContentScanner, VideoReference, author_image_url
from .legacy_source import LegacySource
from .media_downloader import MediaDownloader, cache_key

__all__ = [
    'LegacySource',
    'MediaDownloader',
    'cache_key',
    'ContentScanner',
    'VideoReference',
    'author_image_url',
]
