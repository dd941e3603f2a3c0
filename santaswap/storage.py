"""JSON file-backed store for parties, assignment tables and guest links.

Each collection lives in memory and is persisted to its own file inside the
data directory. Saves back up the previous files, write all three in parallel
and are single-flight: a save requested while another one is running is
dropped.
"""

from __future__ import annotations

import enum
import json
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .security import AssignmentCipher

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    pass


class CorruptResourceError(ValueError):
    pass


class Collection(str, enum.Enum):
    PARTIES = "parties"
    ASSIGNMENTS = "assignments"
    GUEST_LINKS = "guest_links"

    @property
    def filename(self) -> str:
        return f"{self.value}.json"


class DataStore:
    """Authoritative home for the three collections.

    Usage:
        store = DataStore(Path("data"))
        store.load()
        store.set(Collection.PARTIES, party.id, party.to_dict())
        store.save()
    """

    def __init__(self, data_dir: Path, cipher: Optional[AssignmentCipher] = None) -> None:
        self.data_dir = Path(data_dir)
        self.backup_dir = self.data_dir / "backups"
        self._cipher = cipher
        self._data: dict[Collection, dict[str, Any]] = {c: {} for c in Collection}
        self._save_lock = threading.Lock()

    def path_for(self, collection: Collection) -> Path:
        return self.data_dir / collection.filename

    # ------------------------------------------------------------------
    # In-memory access
    # ------------------------------------------------------------------

    def get(self, collection: Collection, key: str, default: Any = None) -> Any:
        return self._data[collection].get(key, default)

    def set(self, collection: Collection, key: str, value: Any) -> None:
        self._data[collection][key] = value

    def contains(self, collection: Collection, key: str) -> bool:
        return key in self._data[collection]

    def count(self, collection: Collection) -> int:
        return len(self._data[collection])

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Verify the data directory and populate memory from disk.

        An unwritable data directory raises StorageUnavailableError. A
        resource that cannot be read or parsed starts empty without affecting
        the others.
        """
        self._ensure_writable()

        for collection in Collection:
            path = self.path_for(collection)
            if path.exists():
                logger.info("%s exists", path.name)
            else:
                logger.info("Creating empty %s", path.name)
                path.write_text("{}", encoding="utf-8")

        for collection in Collection:
            self._data[collection] = self._read_collection(collection)

        logger.info(
            "Loaded %d parties, %d assignment tables, %d guest links",
            self.count(Collection.PARTIES),
            self.count(Collection.ASSIGNMENTS),
            self.count(Collection.GUEST_LINKS),
        )

    def _ensure_writable(self) -> None:
        logger.info("Ensuring data directory exists: %s", self.data_dir)
        probe = self.data_dir / ".write-test"
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            probe.write_text("test", encoding="utf-8")
            probe.unlink()
        except OSError as e:
            logger.critical("Data directory %s is not writable: %s", self.data_dir, e)
            raise StorageUnavailableError(
                f"Data directory {self.data_dir} is not writable"
            ) from e
        logger.info("Data directory is writable")

    def _read_collection(self, collection: Collection) -> dict[str, Any]:
        path = self.path_for(collection)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Could not read %s: %s", path.name, e)
            return {}

        try:
            return self._decode(collection, raw)
        except CorruptResourceError as e:
            logger.error("Corrupted %s, starting fresh: %s", path.name, e)
            return {}

    def _decode(self, collection: Collection, raw: str) -> dict[str, Any]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptResourceError(str(e)) from e
        if not isinstance(data, dict):
            raise CorruptResourceError(f"expected an object, got {type(data).__name__}")

        if collection is Collection.ASSIGNMENTS and self._cipher is not None:
            try:
                data = {k: self._cipher.decrypt_table(v) for k, v in data.items()}
            except ValueError as e:
                raise CorruptResourceError(str(e)) from e
        return data

    def _encode(self, collection: Collection) -> str:
        data = dict(self._data[collection])
        if collection is Collection.ASSIGNMENTS and self._cipher is not None:
            data = {k: self._cipher.encrypt_table(v) for k, v in data.items()}
        return json.dumps(data, indent=2, ensure_ascii=False)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> bool:
        """Persist all collections. Returns False if another save was running."""
        if not self._save_lock.acquire(blocking=False):
            logger.warning("Save already in progress, skipping")
            return False

        started = datetime.now(timezone.utc)
        try:
            logger.info("Starting save operation")
            self._backup(started)

            payloads = {c: self._encode(c) for c in Collection}
            logger.info(
                "Writing data files: %s",
                {c.value: len(p) for c, p in payloads.items()},
            )
            with ThreadPoolExecutor(max_workers=len(payloads)) as pool:
                futures = {
                    c: pool.submit(self._write_resource, self.path_for(c), p)
                    for c, p in payloads.items()
                }
            failed = []
            for collection, future in futures.items():
                try:
                    future.result()
                except OSError:
                    logger.exception("Failed to write %s", self.path_for(collection))
                    failed.append(collection.value)
                else:
                    logger.info("Wrote %s", self.path_for(collection))

            self._verify()
            elapsed = (datetime.now(timezone.utc) - started).total_seconds() * 1000
            if failed:
                logger.error("Save finished in %.0fms with failed writes: %s", elapsed, failed)
            else:
                logger.info("Data saved successfully in %.0fms", elapsed)
        except Exception:
            logger.exception("Error saving data")
        finally:
            self._save_lock.release()
        return True

    def _backup(self, when: datetime) -> None:
        stamp = when.isoformat(timespec="microseconds").replace("+00:00", "Z")
        stamp = stamp.replace(":", "-").replace(".", "-")
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        for collection in Collection:
            source = self.path_for(collection)
            try:
                content = source.read_bytes()
            except FileNotFoundError:
                continue
            target = self.backup_dir / f"{collection.filename}.{stamp}.backup"
            try:
                target.write_bytes(content)
            except OSError as e:
                logger.warning("Could not back up %s: %s", source.name, e)
                continue
            logger.debug("Backed up %s to %s", source.name, target.name)

    @staticmethod
    def _write_resource(path: Path, payload: str) -> None:
        tmp = path.with_name(f".{path.name}.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)

    def _verify(self) -> None:
        sizes = {}
        for collection in Collection:
            path = self.path_for(collection)
            try:
                sizes[collection.value] = f"{path.stat().st_size} bytes"
            except FileNotFoundError:
                sizes[collection.value] = "MISSING!"
                logger.critical("%s is missing after write", path)
        logger.info("Files verification: %s", sizes)
