"""Append-only key/value metadata store.

The CSV log file is the source of truth; the in-memory dict is rebuilt from
it on ``load``. Every ``put`` appends one record before updating memory, so a
crash between the two loses nothing: the next load replays the record.

A sibling ``<log>.lock`` marker declares exclusive access. Compaction holds it
for its whole duration; ``put`` refuses to write while it exists. The lock is
advisory: it coordinates cooperating processes, it does not enforce anything.

``load`` never raises. Lock contention, unreadable files and malformed CSV all
degrade to a best-effort mapping, reported through the returned LoadResult.
"""

from __future__ import annotations

import csv
import os
import sys
from contextlib import ExitStack, contextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from feedlog.errors import ErrorCode, InvalidArgumentError, LockedError
from feedlog.models.store import LoadResult, RecoverableLoadError

if TYPE_CHECKING:
    from collections.abc import Iterator

log = structlog.get_logger()

_CSV_FORMAT = {"delimiter": ",", "lineterminator": "\n"}


class LockMarker:
    """Sentinel-file lock with scoped acquisition."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def is_held(self) -> bool:
        return self._path.exists()

    def ensure_unlocked(self) -> None:
        if self.is_held():
            raise LockedError(f"File locked by another process: {self._path}")

    def acquire(self) -> None:
        """Create the marker. Raises LockedError if it already exists."""
        try:
            fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise LockedError(f"File locked by another process: {self._path}") from exc
        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
        finally:
            os.close(fd)

    def release(self) -> None:
        self._path.unlink(missing_ok=True)

    @contextmanager
    def held(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()


def read_log(path: Path) -> LoadResult:
    """Replay a metadata log into a mapping, last value wins.

    Extra fields are joined onto the value, which is then stripped of
    surrounding whitespace. Rows with an empty key or value are skipped. A
    missing file is an empty log. Any read or CSV error stops the replay and
    is returned alongside the rows parsed so far.
    """
    entries: dict[str, str] = {}
    skipped = 0

    try:
        with path.open("r", encoding="utf-8", newline="") as file_obj:
            for row in csv.reader(file_obj, **_CSV_FORMAT):
                if not row:
                    continue
                key, *rest = row
                value = "".join(rest).strip()
                if not key or not value:
                    skipped += 1
                    continue
                entries[key] = value
    except FileNotFoundError:
        pass
    except (OSError, csv.Error, UnicodeDecodeError) as exc:
        return LoadResult(
            entries=entries,
            skipped=skipped,
            error=RecoverableLoadError(code=ErrorCode.LOAD_FAILED, message=str(exc)),
        )

    return LoadResult(entries=entries, skipped=skipped)


def _fsync_directory(path: Path) -> None:
    if sys.platform == "win32":
        return  # Windows does not support fsync on directory handles
    directory_fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(directory_fd)
    finally:
        os.close(directory_fd)


class MetadataStore:
    """Append-only CSV log of string keys to string values."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = LockMarker(self._path.with_name(self._path.name + ".lock"))
        self._kv: dict[str, str] = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock(self) -> LockMarker:
        return self._lock

    def __len__(self) -> int:
        return len(self._kv)

    def __contains__(self, key: object) -> bool:
        return key in self._kv

    def items(self) -> dict[str, str]:
        """Snapshot of the in-memory mapping."""
        return dict(self._kv)

    # ------------------------------------------------------------------
    # Load / compaction
    # ------------------------------------------------------------------

    def load(self, compact: bool = False) -> LoadResult:
        """Replay the log into memory, optionally compacting it afterwards.

        With ``compact`` the lock marker is held from before the read until
        after the rewrite, and is released on every exit path. Compaction is
        skipped when the replay stopped early, so a partially read log is
        never rewritten.
        """
        with ExitStack() as stack:
            try:
                if compact:
                    stack.enter_context(self._lock.held())
                else:
                    self._lock.ensure_unlocked()
            except LockedError as exc:
                log.warning("store_load_locked", path=str(self._path), lock=str(self._lock.path))
                return LoadResult(
                    entries=dict(self._kv),
                    error=RecoverableLoadError(code=exc.code, message=exc.message),
                )
            except OSError as exc:
                log.warning("store_lock_failed", path=str(self._lock.path), error=str(exc))
                return LoadResult(
                    entries=dict(self._kv),
                    error=RecoverableLoadError(code=ErrorCode.LOAD_FAILED, message=str(exc)),
                )

            result = self._replay()
            if compact and result.ok:
                self._compact(result)

        log.info(
            "store_loaded",
            path=str(self._path),
            entries=len(self._kv),
            skipped=result.skipped,
            compacted=result.compacted,
            recovered=not result.ok,
        )
        return result

    def _replay(self) -> LoadResult:
        try:
            self._path.touch(exist_ok=True)
        except OSError as exc:
            log.warning("store_create_failed", path=str(self._path), error=str(exc))
            return LoadResult(
                entries=dict(self._kv),
                error=RecoverableLoadError(code=ErrorCode.LOAD_FAILED, message=str(exc)),
            )

        result = read_log(self._path)
        if not result.ok:
            log.warning(
                "store_replay_stopped",
                path=str(self._path),
                parsed=len(result.entries),
                error=result.error.message if result.error else None,
            )
        self._kv.update(result.entries)
        return result

    def _compact(self, result: LoadResult) -> None:
        """Rewrite the log with one record per key, then swap it in atomically."""
        compact_path = self._path.with_name(self._path.name + "_compact")
        try:
            with compact_path.open("w", encoding="utf-8", newline="") as file_obj:
                writer = csv.writer(file_obj, **_CSV_FORMAT)
                for key, value in self._kv.items():
                    if key and value:
                        writer.writerow((key, value))
                file_obj.flush()
                os.fsync(file_obj.fileno())
            os.replace(compact_path, self._path)
            _fsync_directory(self._path.parent)
            result.compacted = True
        except OSError as exc:
            log.warning("store_compact_failed", path=str(self._path), exc_info=True)
            result.error = RecoverableLoadError(code=ErrorCode.LOAD_FAILED, message=str(exc))
        finally:
            with suppress(OSError):
                compact_path.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        return self._kv.get(key)

    def put(self, key: str, value: str) -> None:
        """Append ``key,value`` to the log, then update memory.

        Raises LockedError while the lock marker exists and
        InvalidArgumentError for an empty key or value.
        """
        self._lock.ensure_unlocked()
        if not key or not value:
            raise InvalidArgumentError("Null or empty value provided to metadata store")

        with self._path.open("a", encoding="utf-8", newline="") as file_obj:
            csv.writer(file_obj, **_CSV_FORMAT).writerow((key, value))
        self._kv[key] = value
