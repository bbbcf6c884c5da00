"""Find-or-create helpers for tag documents (run marker, content-type tags)."""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger('wemeditate_migrator.importers.tag_manager')

MEDIA_TAGS = 'media-tags'
PAGE_TAGS = 'page-tags'


class TagManager:
    """Ensures tags exist in a tag collection, caching their ids."""

    def __init__(self, client: Any, logger: Optional[logging.Logger] = None):
        """
        Initialize tag manager.

        Args:
            client: PayloadClient (or any object with the same find/create contract)
            logger: Optional logger instance
        """
        self.client = client
        self.logger = logger or logging.getLogger('wemeditate_migrator.importers.tag_manager')
        self._cache: Dict[str, str] = {}

    def find_tag(self, collection: str, name: str) -> Optional[str]:
        """Id of an existing tag, without creating it."""
        cache_key = f"{collection}:{name}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        existing = self.client.find(collection, where={'name': {'equals': name}}, limit=1)
        if existing['docs']:
            tag_id = str(existing['docs'][0]['id'])
            self._cache[cache_key] = tag_id
            return tag_id
        return None

    def ensure_tag(self, collection: str, name: str, extra: Optional[Dict[str, Any]] = None) -> str:
        """
        Return the id of tag ``name`` in ``collection``, creating it if needed.

        Args:
            collection: Tag collection slug
            name: Tag name (unique natural key)
            extra: Additional fields for a newly created tag

        Returns:
            Tag document id
        """
        tag_id = self.find_tag(collection, name)
        if tag_id is not None:
            self.logger.debug(f"Found existing tag: {collection}/{name}")
            return tag_id

        tag = self.client.create(collection, {'name': name, **(extra or {})})
        tag_id = str(tag['id'])
        self._cache[f"{collection}:{name}"] = tag_id
        self.logger.info(f"Created tag: {collection}/{name}")
        return tag_id

    def ensure_media_tag(self, import_tag: str) -> str:
        return self.ensure_tag(MEDIA_TAGS, import_tag)

    def ensure_page_tag(self, name: str, title: Optional[str] = None) -> str:
        return self.ensure_tag(PAGE_TAGS, name, {'title': title or name})


__all__ = ['TagManager', 'MEDIA_TAGS', 'PAGE_TAGS']
