from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Sequence

from mls_agents.merger import MergeSummary, merge
from mls_agents.records import ContactRecord, RecordStore, decode, encode

if TYPE_CHECKING:
    from mls_agents.walker import WalkState

logger = logging.getLogger(__name__)


def epoch_millis() -> int:
    return int(time.time() * 1000)


class OutputLayout:
    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    @property
    def dataset_path(self) -> Path:
        return self.root / "agents.csv"

    def instance_path(self, timestamp: int) -> Path:
        return self.root / "instances" / f"{timestamp}.csv"

    def checkpoint_path(self, timestamp: int) -> Path:
        return self.root / "checkpoints" / f"agents-{timestamp}.csv"


def _write_new(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # "x" refuses to clobber an earlier snapshot with the same timestamp.
    with path.open("xb") as handle:
        handle.write(data)


def _replace_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class Persister:
    def __init__(self, layout: OutputLayout, clock: Callable[[], int] = epoch_millis) -> None:
        self.layout = layout
        self.clock = clock

    def load_dataset(self) -> list[ContactRecord] | None:
        path = self.layout.dataset_path
        if not path.exists():
            return None
        return decode(path.read_bytes())

    def persist(self, batch: Sequence[ContactRecord]) -> MergeSummary:
        timestamp = self.clock()

        records = [record for record in batch if record.has_email]
        if len(records) != len(batch):
            logger.warning("Dropping %d records without an email", len(batch) - len(records))

        instance_path = self.layout.instance_path(timestamp)
        logger.info("Writing instance data to %s", instance_path)
        _write_new(instance_path, encode(records))

        existing = self.load_dataset()
        if existing is None:
            logger.info("%s not found, initializing", self.layout.dataset_path)
        else:
            stored = [record for record in existing if record.has_email]
            if len(stored) != len(existing):
                logger.warning("Dropping %d dataset rows without an email", len(existing) - len(stored))
            existing = stored
            logger.info("Merging into %s (%d agents)", self.layout.dataset_path, len(existing))

        updated, summary = merge(existing, records)

        payload = encode(updated)
        checkpoint_path = self.layout.checkpoint_path(timestamp)
        logger.info("Writing checkpoint to %s", checkpoint_path)
        _write_new(checkpoint_path, payload)
        _replace_atomic(self.layout.dataset_path, payload)
        return summary


def log_summary(summary: MergeSummary, error_count: int) -> None:
    logger.info("---------------------- SUMMARY ----------------------")
    logger.info("Agents before this run: %d", summary.count_before)
    logger.info("Agents after this run: %d", summary.count_after)
    logger.info("Existing (possibly updated) agents seen this run: %d", summary.updated_count)
    logger.info("New agents found this run: %d", summary.new_count)
    logger.info("Error/skipped count: %d", error_count)


class RunFinalizer:
    """Persists whatever the run collected, exactly once.

    Normal completion, the fatal-error path, the signal path and the atexit
    hook all call ``flush``; only the first call writes.
    """

    def __init__(self, persister: Persister, store: RecordStore, state: WalkState | None = None) -> None:
        self.persister = persister
        self.store = store
        self.state = state
        self._lock = threading.Lock()
        self._flushed = False

    @property
    def flushed(self) -> bool:
        return self._flushed

    def flush(self, reason: str = "completed") -> MergeSummary | None:
        with self._lock:
            if self._flushed:
                logger.debug("Flush already done, ignoring (%s)", reason)
                return None
            self._flushed = True

        logger.info("Saving scraped data (%s): %d records collected", reason, len(self.store))
        summary = self.persister.persist(self.store.batch())
        log_summary(summary, self.state.error_count if self.state is not None else 0)
        return summary
