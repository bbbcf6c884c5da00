"""
Media ingestion with deduplication.

``ingest`` turns one source image reference into one Payload ``media``
document. Repeat references within a run are answered from memory; across
runs, an existing document is found by its file name. Payload appends a
random suffix to clashing upload names (``abc.webp`` -> ``abc-x7k2.webp``),
so candidates from a "contains" query are confirmed with a pattern match.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from exceptions import DestinationStoreError
from importers.payload_client import UploadFile
from models import MediaMetadata, MediaUploadResult

logger = logging.getLogger('wemeditate_migrator.importers.media_uploader')

MEDIA_COLLECTION = 'media'
WEBP_MIMETYPE = 'image/webp'


def filename_pattern(filename: str) -> re.Pattern:
    """Pattern for ``{base}(-{suffix})?{ext}``, case-insensitive."""
    path = Path(filename)
    return re.compile(
        rf'^{re.escape(path.stem)}(-[a-z0-9]+)?{re.escape(path.suffix)}$',
        re.IGNORECASE
    )


def _tag_id(tag: Any) -> Any:
    return tag.get('id') if isinstance(tag, dict) else tag


class MediaUploader:
    """Downloads, converts and uploads media exactly once per source reference."""

    def __init__(
        self,
        client: Any,
        downloader: Any,
        tag_ids: Optional[List[str]] = None,
        find_limit: int = 100,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize media uploader.

        Args:
            client: PayloadClient
            downloader: MediaDownloader producing cached WebP files
            tag_ids: Media tag ids attached to every uploaded or reused document
            find_limit: Maximum candidates inspected by the filename probe
            logger: Optional logger instance
        """
        self.client = client
        self.downloader = downloader
        self.tag_ids = list(tag_ids or [])
        self.find_limit = find_limit
        self.logger = logger or logging.getLogger('wemeditate_migrator.importers.media_uploader')

        self._by_ref: Dict[str, MediaUploadResult] = {}
        self.stats = {'uploaded': 0, 'reused': 0}

    def ingest(self, source_ref: str, metadata: Optional[MediaMetadata] = None) -> MediaUploadResult:
        """
        Produce a media document for a source reference.

        Args:
            source_ref: Source image URL or local path
            metadata: Alt text and credit for a new upload

        Returns:
            MediaUploadResult (``was_reused`` is True when no upload happened)

        Raises:
            DownloadError: If the image cannot be fetched
            ConversionError: If the image cannot be transcoded
            DestinationStoreError: If the upload itself fails
        """
        cached = self._by_ref.get(source_ref)
        if cached is not None:
            self.stats['reused'] += 1
            return MediaUploadResult(id=cached.id, filename=cached.filename, was_reused=True)

        download = self.downloader.download_and_convert(source_ref)
        filename = Path(download.local_path).name

        result = self._reuse_existing(filename)
        if result is None:
            result = self._upload(download, filename, metadata or MediaMetadata())

        self._by_ref[source_ref] = result
        return result

    def _reuse_existing(self, filename: str) -> Optional[MediaUploadResult]:
        media_id = self.find_existing(filename)
        if media_id is None:
            return None

        doc = self.client.find_by_id(MEDIA_COLLECTION, media_id)
        if not doc or not doc.get('filename'):
            self.logger.debug(f"Media {media_id} vanished before reuse, uploading again")
            return None

        self.merge_tags(doc)
        self.stats['reused'] += 1
        self.logger.info(f"Reusing existing media: {doc['filename']}")
        return MediaUploadResult(id=media_id, filename=doc['filename'], was_reused=True)

    def find_existing(self, filename: str) -> Optional[str]:
        """
        Probe Payload for a media document stored under ``filename``.

        Returns:
            Media id, or None when no candidate matches the naming pattern
        """
        stem = Path(filename).stem
        result = self.client.find(
            MEDIA_COLLECTION,
            where={'filename': {'contains': stem}},
            limit=self.find_limit
        )

        pattern = filename_pattern(filename)
        for doc in result['docs']:
            if pattern.match(doc.get('filename') or ''):
                self.logger.debug(f"Found existing media {doc.get('filename')} for {filename}")
                return str(doc['id'])

        if result['docs']:
            names = ', '.join(str(doc.get('filename')) for doc in result['docs'][:5])
            self.logger.warning(
                f"{len(result['docs'])} media names contain '{stem}' but none match the "
                f"expected suffix pattern ({names}); uploading a new copy"
            )
        return None

    def merge_tags(self, doc: Dict[str, Any]) -> None:
        """Add the configured tags to an existing document, keeping its own."""
        if not self.tag_ids:
            return

        current = [_tag_id(tag) for tag in (doc.get('tags') or [])]
        present = {str(tag) for tag in current}
        missing = [tag for tag in self.tag_ids if str(tag) not in present]
        if not missing:
            return

        try:
            self.client.update(MEDIA_COLLECTION, str(doc['id']), {'tags': current + missing})
            self.logger.debug(f"Added {len(missing)} tags to media {doc['id']}")
        except DestinationStoreError as e:
            self.logger.warning(f"Failed to add tags to media {doc['id']}: {e}")

    def _upload(self, download: Any, filename: str, metadata: MediaMetadata) -> MediaUploadResult:
        data = {
            'alt': metadata.alt or '',
            'credit': metadata.credit or '',
            'tags': list(self.tag_ids),
        }
        upload = UploadFile(data=self.downloader.read_bytes(download), name=filename, mimetype=WEBP_MIMETYPE)

        doc = self.client.create(MEDIA_COLLECTION, data, file=upload)
        self.stats['uploaded'] += 1
        stored_name = doc.get('filename') or filename
        self.logger.info(f"Uploaded new media: {stored_name}")
        return MediaUploadResult(id=str(doc['id']), filename=stored_name, was_reused=False)

    def get_stats(self) -> Dict[str, int]:
        stats = dict(self.stats)
        stats.update(self.downloader.get_stats())
        return stats

    def clear_cache(self) -> None:
        self._by_ref.clear()


__all__ = ['MediaUploader', 'filename_pattern', 'MEDIA_COLLECTION']
