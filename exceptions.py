"""Exception hierarchy for the WeMeditate to Payload migration."""

from typing import Optional


class MigrationError(Exception):
    """Base class for all migration errors."""


class ConfigurationError(MigrationError, ValueError):
    """Raised when required configuration is missing or invalid."""


class CheckpointError(MigrationError):
    """Raised when a checkpoint or mapping file cannot be read or written."""


class MappingConflictError(MigrationError):
    """Raised when a source key is re-mapped to a different destination id."""

    def __init__(self, kind: str, source_key, existing: str, attempted: str):
        self.kind = kind
        self.source_key = source_key
        self.existing = existing
        self.attempted = attempted
        super().__init__(
            f"{kind} mapping for {source_key!r} already points to {existing}, "
            f"refusing to overwrite with {attempted}"
        )


class AssetError(MigrationError):
    """Base class for media ingestion failures. Always fatal to the run."""

    def __init__(self, source_ref: str, message: str):
        self.source_ref = source_ref
        super().__init__(f"{message} ({source_ref})")


class DownloadError(AssetError):
    """The media bytes could not be fetched."""


class ConversionError(AssetError):
    """The fetched bytes could not be decoded or transcoded."""


class BlockConversionError(MigrationError):
    """A single content block failed to convert; aborts the whole page."""

    def __init__(self, block_type: str, index: int, page_label: str, cause: Exception):
        self.block_type = block_type
        self.index = index
        self.page_label = page_label
        super().__init__(
            f"Failed to convert block type '{block_type}' at index {index} "
            f"for {page_label}: {cause}"
        )


class DestinationStoreError(MigrationError):
    """The Payload REST API rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ''):
        self.status_code = status_code
        self.body = body
        detail = f" [HTTP {status_code}]" if status_code else ''
        super().__init__(f"{message}{detail}")


class SourceDatabaseError(MigrationError):
    """The legacy database could not be provisioned or queried."""


__all__ = [
    'MigrationError',
    'ConfigurationError',
    'CheckpointError',
    'MappingConflictError',
    'AssetError',
    'DownloadError',
    'ConversionError',
    'BlockConversionError',
    'DestinationStoreError',
    'SourceDatabaseError',
]
