"""Import package for the WeMeditate to Payload migration.

Destination-side components: the Payload REST client, the durable
checkpoint, the identifier mapping registry, media ingestion and tags.

Package Structure:
- payload_client: REST client for Payload collections (CRUD, uploads)
- checkpoint_store: Durable record of migration progress
- id_mapping_registry: Legacy id -> Payload id maps, natural-key resolution
- media_uploader: Deduplicated media ingestion
- tag_manager: Find-or-create helpers for tag collections
"""

from .checkpoint_store import CheckpointStore, STATE_FILENAME
from .id_mapping_registry import (
    IdMappingRegistry,
    MEDITATION_TITLE_ALIASES,
    normalize_title,
    resolve_by_natural_key,
)
from .media_uploader import MediaUploader
from .payload_client import PayloadClient, UploadFile
from .tag_manager import TagManager

__all__ = [
    'PayloadClient',
    'UploadFile',
    'CheckpointStore',
    'STATE_FILENAME',
    'IdMappingRegistry',
    'MEDITATION_TITLE_ALIASES',
    'normalize_title',
    'resolve_by_natural_key',
    'MediaUploader',
    'TagManager',
]
