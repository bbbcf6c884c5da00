"""
Checkpoint store for resumable imports.

The checkpoint is a single JSON document under the cache directory. Every
save rewrites the whole document so the file on disk is always one
well-formed record.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from exceptions import CheckpointError
from models import CheckpointRecord

logger = logging.getLogger('wemeditate_migrator.importers.checkpoint')

STATE_FILENAME = 'import-state.json'


def write_json_atomic(path: Path, payload) -> None:
    """Write JSON to a sibling temp file and rename it over ``path``."""
    tmp_path = path.with_name(path.name + '.tmp')
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


class CheckpointStore:
    """Loads, mutates and persists the :class:`CheckpointRecord`."""

    def __init__(self, cache_dir: Union[str, Path], logger: Optional[logging.Logger] = None):
        """
        Initialize checkpoint store.

        Args:
            cache_dir: Working cache directory holding the state file
            logger: Optional logger instance
        """
        self.path = Path(cache_dir) / STATE_FILENAME
        self.logger = logger or logging.getLogger('wemeditate_migrator.importers.checkpoint')
        self.record = CheckpointRecord()

    def load(self) -> Optional[CheckpointRecord]:
        """
        Load the checkpoint from disk.

        Returns:
            The loaded record, or None when no checkpoint exists yet

        Raises:
            CheckpointError: If the file exists but cannot be read or parsed
        """
        if not self.path.exists():
            self.logger.info("No previous state found, starting fresh")
            return None

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointError(f"Cannot read checkpoint {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise CheckpointError(f"Checkpoint {self.path} does not contain an object")

        self.record = CheckpointRecord.from_dict(data)
        self.logger.info(
            f"Loaded state from {self.path}: phase={self.record.phase}, "
            f"{len(self.record.items_created)} items created"
        )
        return self.record

    def save(self, record: Optional[CheckpointRecord] = None) -> None:
        """
        Persist the whole record, updating ``lastUpdated``.

        Args:
            record: Record to persist (defaults to the current one)

        Raises:
            CheckpointError: If the file cannot be written
        """
        if record is not None:
            self.record = record
        self.record.touch()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_json_atomic(self.path, self.record.to_dict())
        except OSError as e:
            raise CheckpointError(f"Cannot write checkpoint {self.path}: {e}") from e

    def set_phase(self, phase: str) -> None:
        """Enter a phase and persist immediately."""
        self.record.phase = phase
        self.logger.debug(f"Entering phase: {phase}")
        self.save()

    def has_item(self, key: str) -> bool:
        return self.record.has_item(key)

    def get_item(self, key: str) -> Optional[str]:
        return self.record.items_created.get(key)

    def add_item(self, key: str, destination_id: str) -> None:
        self.record.items_created[key] = destination_id

    def add_failed(self, message: str) -> None:
        self.record.failed.append(message)

    def reset(self) -> None:
        """Start over with an empty record and persist it."""
        self.record = CheckpointRecord()
        self.save()
        self.logger.info("Checkpoint reset")


__all__ = ['CheckpointStore', 'STATE_FILENAME', 'write_json_atomic']
