"""
Media downloader with a content-addressed local cache.

Every source reference maps to ``{md5(ref)}.webp`` under
``{cache_dir}/assets/images``. A file already present there is reused
without touching the network, so re-runs never download twice.
"""

import hashlib
import io
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

import requests
from PIL import Image, UnidentifiedImageError

from exceptions import ConversionError, DownloadError
from models import DownloadResult

logger = logging.getLogger('wemeditate_migrator.fetchers.media_downloader')

IMAGE_SUBDIR = os.path.join('assets', 'images')
TARGET_FORMAT = 'WEBP'
TARGET_EXTENSION = '.webp'
TARGET_MIMETYPE = 'image/webp'
DEFAULT_QUALITY = 90


def cache_key(source_ref: str) -> str:
    """Stable hash of a source reference, used as the cached file name."""
    return hashlib.md5(source_ref.encode('utf-8')).hexdigest()


class MediaDownloader:
    """Downloads images and transcodes them to WebP."""

    def __init__(
        self,
        cache_dir: Union[str, Path],
        quality: int = DEFAULT_QUALITY,
        timeout: int = 60,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize downloader.

        Args:
            cache_dir: Migration cache directory (images go to ``assets/images`` below it)
            quality: WebP quality setting
            timeout: HTTP timeout in seconds
            session: Optional requests session (used by tests)
            logger: Optional logger instance
        """
        self.cache_dir = Path(cache_dir) / IMAGE_SUBDIR
        self.quality = quality
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger('wemeditate_migrator.fetchers.media_downloader')

        self._results: Dict[str, DownloadResult] = {}
        self.stats = {'downloaded': 0, 'cache_hits': 0}

    def initialize(self) -> None:
        """Create the cache directory."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def local_path_for(self, source_ref: str) -> Path:
        return self.cache_dir / f"{cache_key(source_ref)}{TARGET_EXTENSION}"

    def download_and_convert(self, source_ref: str) -> DownloadResult:
        """
        Fetch a source image and store it as WebP in the local cache.

        Args:
            source_ref: Absolute http(s) URL or local file path

        Returns:
            DownloadResult for the cached WebP file

        Raises:
            DownloadError: If the bytes cannot be fetched
            ConversionError: If the bytes cannot be decoded or transcoded
        """
        if source_ref in self._results:
            return self._results[source_ref]

        local_path = self.local_path_for(source_ref)

        cached = self._load_cached(source_ref, local_path)
        if cached is not None:
            self._results[source_ref] = cached
            return cached

        data = self._fetch(source_ref)
        result = self._convert(source_ref, data, local_path)
        self.stats['downloaded'] += 1
        self.logger.info(f"Downloaded and converted: {local_path.name}")

        self._results[source_ref] = result
        return result

    def read_bytes(self, result: DownloadResult) -> bytes:
        with open(result.local_path, 'rb') as f:
            return f.read()

    def _load_cached(self, source_ref: str, local_path: Path) -> Optional[DownloadResult]:
        if not local_path.exists():
            return None

        try:
            with Image.open(local_path) as img:
                width, height = img.size
        except (UnidentifiedImageError, OSError) as e:
            self.logger.warning(f"Discarding unreadable cached image {local_path.name}: {e}")
            local_path.unlink()
            return None

        self.stats['cache_hits'] += 1
        self.logger.debug(f"Using cached image: {local_path.name}")
        return DownloadResult(
            local_path=str(local_path),
            hash=cache_key(source_ref),
            width=width,
            height=height,
            from_cache=True,
        )

    def _fetch(self, source_ref: str) -> bytes:
        if not source_ref.startswith(('http://', 'https://')):
            if os.path.isfile(source_ref):
                with open(source_ref, 'rb') as f:
                    return f.read()
            raise DownloadError(source_ref, "Not a URL or readable file")

        self.logger.debug(f"Downloading image: {source_ref}")
        try:
            response = self.session.get(source_ref, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DownloadError(source_ref, f"Download failed: {e}") from e

        if not response.content:
            raise DownloadError(source_ref, "Empty response body")
        return response.content

    def _convert(self, source_ref: str, data: bytes, local_path: Path) -> DownloadResult:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = local_path.with_name(local_path.name + '.tmp')

        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                width, height = img.size
                if img.mode not in ('RGB', 'RGBA'):
                    has_alpha = 'A' in img.getbands() or 'transparency' in img.info
                    img = img.convert('RGBA' if has_alpha else 'RGB')
                img.save(tmp_path, TARGET_FORMAT, quality=self.quality)
            os.replace(tmp_path, local_path)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise ConversionError(source_ref, f"Image conversion failed: {e}") from e

        return DownloadResult(
            local_path=str(local_path),
            hash=cache_key(source_ref),
            width=width,
            height=height,
            from_cache=False,
        )

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)


__all__ = ['MediaDownloader', 'cache_key', 'TARGET_MIMETYPE', 'TARGET_EXTENSION']
