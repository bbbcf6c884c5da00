"""
Identifier mapping registry for the WeMeditate to Payload import.

This module tracks the mapping between legacy source identifiers and Payload
document ids, one map per entity kind, and persists them next to the
checkpoint so a resumed run can resolve references created earlier.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from exceptions import CheckpointError, MappingConflictError
from importers.checkpoint_store import write_json_atomic

logger = logging.getLogger('wemeditate_migrator.importers.id_mapping')

MAPPINGS_FILENAME = 'id-mappings.json'

# Kinds keyed by numeric legacy ids
NUMERIC_KINDS = (
    'authors',
    'categories',
    'static_pages',
    'articles',
    'promo_pages',
    'subtle_system_nodes',
    'treatments',
)

# Kinds keyed by natural string keys (URLs, form types, provider video ids)
STRING_KINDS = (
    'media',
    'forms',
    'external_videos',
)

ALL_KINDS = NUMERIC_KINDS + STRING_KINDS

# Legacy meditation titles that were renamed in Payload (normalized source -> destination).
# Extended at runtime by migration.meditation_title_aliases.
MEDITATION_TITLE_ALIASES: Dict[str, str] = {
    'self realization': 'self-realization',
    'balancing the left and right channel': 'balancing the channels',
    'footsoaking': 'foot soaking',
}


def normalize_title(title: Any) -> str:
    """Normalize a natural-key title for lookups."""
    return str(title or '').strip().lower()


def resolve_by_natural_key(
    source_id: Any,
    id_to_title: Mapping[int, str],
    title_to_destination: Mapping[str, str],
    aliases: Mapping[str, str],
) -> Optional[str]:
    """
    Resolve a numeric source id through its title to a destination id.

    Args:
        source_id: Numeric source identifier
        id_to_title: Source id -> title, built from the legacy database
        title_to_destination: Title -> destination id, built from Payload
        aliases: Source title -> destination title overrides

    Returns:
        Destination id, or None when unresolved
    """
    try:
        numeric_id = int(source_id)
    except (TypeError, ValueError):
        return None

    title = id_to_title.get(numeric_id)
    if not title:
        return None

    title = normalize_title(title)
    destination_id = title_to_destination.get(title)
    if destination_id:
        return destination_id

    alias = aliases.get(title)
    if alias:
        return title_to_destination.get(normalize_title(alias))

    return None


class IdMappingRegistry:
    """Tracks mappings between legacy ids and Payload document ids."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the registry with one empty map per entity kind.

        Args:
            logger: Optional logger instance (defaults to module logger)
        """
        self.logger = logger or logging.getLogger('wemeditate_migrator.importers.id_mapping')
        self._maps: Dict[str, Dict[Any, str]] = {kind: {} for kind in ALL_KINDS}

        # Built from a fresh query each run, never persisted
        self.meditation_titles: Dict[int, str] = {}
        self.meditation_title_map: Dict[str, str] = {}

    def _coerce_key(self, kind: str, source_key: Any) -> Any:
        if kind in NUMERIC_KINDS:
            return int(source_key)
        return str(source_key)

    def map_for(self, kind: str) -> Dict[Any, str]:
        """
        Get the live map for an entity kind.

        Raises:
            KeyError: If the kind is unknown
        """
        if kind not in self._maps:
            raise KeyError(f"Unknown mapping kind: {kind}")
        return self._maps[kind]

    def set(self, kind: str, source_key: Any, destination_id: str) -> None:
        """
        Store a mapping. Re-setting the same value is a no-op.

        Raises:
            MappingConflictError: If the key already maps to a different id
        """
        mapping = self.map_for(kind)
        key = self._coerce_key(kind, source_key)
        destination_id = str(destination_id)

        existing = mapping.get(key)
        if existing is not None and existing != destination_id:
            raise MappingConflictError(kind, key, existing, destination_id)

        mapping[key] = destination_id
        self.logger.debug(f"Mapping added: {kind} {key} -> {destination_id}")

    def get(self, kind: str, source_key: Any) -> Optional[str]:
        """Get the destination id for a source key, or None."""
        try:
            key = self._coerce_key(kind, source_key)
        except (TypeError, ValueError):
            return None
        return self.map_for(kind).get(key)

    def has(self, kind: str, source_key: Any) -> bool:
        return self.get(kind, source_key) is not None

    def serialize(self) -> Dict[str, Dict[str, str]]:
        """Return the persisted form: string-keyed maps per kind."""
        return {
            kind: {str(key): value for key, value in mapping.items()}
            for kind, mapping in self._maps.items()
        }

    def deserialize(self, data: Mapping[str, Mapping[str, str]]) -> None:
        """
        Replace all maps from their persisted form.

        Numeric kinds get their keys coerced back to ints; unknown kinds are
        ignored with a warning.
        """
        for kind in ALL_KINDS:
            self._maps[kind] = {}

        for kind, entries in data.items():
            if kind not in self._maps:
                self.logger.warning(f"Ignoring unknown mapping kind in cache: {kind}")
                continue
            for key, value in (entries or {}).items():
                self._maps[kind][self._coerce_key(kind, key)] = str(value)

    def save(self, cache_dir: Union[str, Path]) -> None:
        """
        Persist all maps to ``id-mappings.json`` under the cache directory.

        Raises:
            CheckpointError: If the file cannot be written
        """
        path = Path(cache_dir) / MAPPINGS_FILENAME
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(path, self.serialize())
        except OSError as e:
            raise CheckpointError(f"Cannot write ID mappings {path}: {e}") from e

    def load(self, cache_dir: Union[str, Path]) -> bool:
        """
        Load maps from the cache directory.

        Returns:
            True if a mapping file was loaded, False if none exists

        Raises:
            CheckpointError: If the file exists but is unreadable or malformed
        """
        path = Path(cache_dir) / MAPPINGS_FILENAME
        if not path.exists():
            self.logger.info("No existing ID mappings found, starting fresh")
            return False

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self.deserialize(data)
        except (OSError, json.JSONDecodeError, TypeError, ValueError, AttributeError) as e:
            raise CheckpointError(f"Cannot read ID mappings {path}: {e}") from e

        self.logger.info(f"Loaded ID mappings from {path}")
        return True

    def get_statistics(self) -> Dict[str, int]:
        """Get mapping counts per kind."""
        stats = {kind: len(mapping) for kind, mapping in self._maps.items()}
        stats['meditation_titles'] = len(self.meditation_title_map)
        return stats

    def clear(self) -> None:
        """Clear all mappings."""
        for mapping in self._maps.values():
            mapping.clear()
        self.meditation_titles.clear()
        self.meditation_title_map.clear()
        self.logger.debug("Cleared all ID mappings")


__all__ = [
    'IdMappingRegistry',
    'resolve_by_natural_key',
    'normalize_title',
    'MEDITATION_TITLE_ALIASES',
    'NUMERIC_KINDS',
    'STRING_KINDS',
    'ALL_KINDS',
    'MAPPINGS_FILENAME',
]
