"""Collects media and external-video references from legacy block content."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from converters.source_blocks import content_blocks, image_preview, media_file_url, resolve_media_url
from models import MediaMetadata

logger = logging.getLogger('wemeditate_migrator.fetchers.content_scanner')

AUTHOR_IMAGE_ALT = 'Author profile image'


@dataclass
class VideoReference:
    """An external video discovered in a ``vimeo`` block."""

    video_id: str
    title: str = ''
    thumbnail_url: Optional[str] = None
    vimeo_id: Optional[str] = None
    youtube_id: Optional[str] = None

    @property
    def url(self) -> str:
        if self.vimeo_id:
            return f"https://vimeo.com/{self.vimeo_id}"
        return f"https://youtube.com/watch?v={self.youtube_id}"


def author_image_url(image: Any, base_url: str) -> Optional[str]:
    """URL of an author portrait stored as ``{file: {url}}`` or a plain http URL."""
    if isinstance(image, dict):
        return media_file_url(image, base_url)
    if isinstance(image, str) and image.startswith('http'):
        return image
    return None


class ContentScanner:
    """
    Accumulates unique references over many content payloads.

    Malformed blocks are ignored here; they fail loudly later, when the
    content itself is converted.
    """

    def __init__(self, base_url: str, logger: Optional[logging.Logger] = None):
        self.base_url = base_url
        self.logger = logger or logging.getLogger('wemeditate_migrator.fetchers.content_scanner')
        self.media: Dict[str, MediaMetadata] = {}
        self.videos: Dict[str, VideoReference] = {}

    def add_media(self, url: Optional[str], metadata: Optional[MediaMetadata] = None) -> None:
        """Record a media URL; descriptive metadata fills in once known."""
        if not url:
            return
        existing = self.media.get(url)
        if existing is None:
            self.media[url] = metadata or MediaMetadata()
        elif metadata is not None and not (existing.alt or existing.credit or existing.caption):
            self.media[url] = metadata

    def scan(self, content: Any) -> None:
        """Scan one content payload."""
        try:
            blocks = content_blocks(content)
        except ValueError as e:
            self.logger.warning(f"Skipping unparseable content while scanning: {e}")
            return

        for block in blocks or []:
            if not isinstance(block, dict) or not isinstance(block.get('data'), dict):
                continue
            block_type = block.get('type')
            data = block['data']

            if block_type == 'textbox':
                self._scan_textbox(data)
            elif block_type in ('layout', 'media'):
                self._scan_items(data, with_metadata=block_type == 'media')
            elif block_type == 'vimeo':
                self._scan_video(data)

    def _scan_textbox(self, data: Dict[str, Any]) -> None:
        media_files = data.get('mediaFiles')
        if not isinstance(media_files, list):
            return
        for entry in media_files:
            self.add_media(media_file_url(entry, self.base_url))

    def _scan_items(self, data: Dict[str, Any], with_metadata: bool) -> None:
        items = data.get('items')
        if not isinstance(items, list):
            return
        for item in items:
            if not isinstance(item, dict):
                continue
            url = image_preview(item)
            if not url:
                continue
            metadata = None
            if with_metadata:
                metadata = MediaMetadata(
                    alt=str(item.get('alt') or ''),
                    credit=str(item.get('credit') or ''),
                    caption=str(item.get('caption') or ''),
                )
            self.add_media(url, metadata)

    def _scan_video(self, data: Dict[str, Any]) -> None:
        vimeo_id = data.get('vimeo_id')
        youtube_id = data.get('youtube_id')
        video_id = vimeo_id or youtube_id
        if not video_id:
            return

        thumbnail = data.get('thumbnail') or data.get('preview')
        thumbnail_url = None
        if isinstance(thumbnail, str) and thumbnail.strip():
            thumbnail_url = resolve_media_url(thumbnail, self.base_url)
            self.add_media(thumbnail_url, MediaMetadata(alt=str(data.get('title') or '')))

        video_id = str(video_id)
        if video_id not in self.videos:
            self.videos[video_id] = VideoReference(
                video_id=video_id,
                title=str(data.get('title') or ''),
                thumbnail_url=thumbnail_url,
                vimeo_id=str(vimeo_id) if vimeo_id else None,
                youtube_id=str(youtube_id) if youtube_id else None,
            )

    def add_author_image(self, image: Any) -> Optional[str]:
        url = author_image_url(image, self.base_url)
        self.add_media(url, MediaMetadata(alt=AUTHOR_IMAGE_ALT))
        return url


__all__ = ['ContentScanner', 'VideoReference', 'author_image_url', 'AUTHOR_IMAGE_ALT']
