"""
Generic per-row loop shared by every migration phase.

Each phase hands over its rows, a handler that produces a destination id for
one row, and a :class:`FailurePolicy`. Metadata phases continue past failing
rows and record them; content and media phases let the first failure
propagate and abort the run.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from exceptions import AssetError, CheckpointError

logger = logging.getLogger('wemeditate_migrator.orchestrator.row_processor')

# Propagate regardless of policy
ALWAYS_FATAL = (AssetError, CheckpointError)


class FailurePolicy(Enum):
    """What a failing row does to its phase."""
    CONTINUE = "continue"
    ABORT = "abort"


def process_rows(
    rows: Iterable[Any],
    handler: Callable[[Any], Optional[str]],
    checkpoint: Any,
    key_fn: Optional[Callable[[Any], str]] = None,
    policy: FailurePolicy = FailurePolicy.CONTINUE,
    record: Optional[Callable[[Any, str], None]] = None,
    persist: Optional[Callable[[], None]] = None,
    label_fn: Callable[[Any], str] = str,
    tracker: Any = None,
    logger: Optional[logging.Logger] = None
) -> Dict[str, int]:
    """
    Run ``handler`` over ``rows`` one at a time.

    Args:
        rows: Source rows (any iterable, e.g. wrapped in a tqdm bar)
        handler: Returns the destination id for a row, or None when the row
            was deliberately skipped (nothing to create)
        checkpoint: CheckpointStore used for the done-check and failure log
        key_fn: Work-item key of a row; rows without keys are never skipped
        policy: Failure policy for this phase
        record: Called with ``(row, destination_id)`` for created rows and for
            rows already present in the checkpoint
        persist: Called after every created or failed row
        label_fn: Human-readable row label for log messages
        tracker: Optional ProgressTracker
        logger: Optional logger instance

    Returns:
        Counters: total, created, skipped, failed
    """
    log = logger or logging.getLogger('wemeditate_migrator.orchestrator.row_processor')
    stats = {'total': 0, 'created': 0, 'skipped': 0, 'failed': 0}

    for row in rows:
        stats['total'] += 1
        key = key_fn(row) if key_fn else None

        if key is not None and checkpoint.has_item(key):
            log.debug(f"Skipping {label_fn(row)}, already created")
            if record is not None:
                record(row, checkpoint.get_item(key))
            stats['skipped'] += 1
            if tracker is not None:
                tracker.increment(skipped=True)
            continue

        try:
            destination_id = handler(row)
        except ALWAYS_FATAL:
            raise
        except Exception as e:
            if policy is FailurePolicy.ABORT:
                log.error(f"Error processing {label_fn(row)}: {e}")
                raise

            message = f"Error importing {label_fn(row)}: {e}"
            log.error(message)
            checkpoint.add_failed(message)
            stats['failed'] += 1
            if tracker is not None:
                tracker.increment(success=False)
            if persist is not None:
                persist()
            continue

        if destination_id is None:
            stats['skipped'] += 1
            if tracker is not None:
                tracker.increment(skipped=True)
            continue

        if key is not None:
            checkpoint.add_item(key, destination_id)
        if record is not None:
            record(row, destination_id)
        if persist is not None:
            persist()

        stats['created'] += 1
        if tracker is not None:
            tracker.increment(success=True)

    return stats


__all__ = ['FailurePolicy', 'process_rows', 'ALWAYS_FATAL']
