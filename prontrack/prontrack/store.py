"""Record store: the persistence seam every other component depends on.

Two implementations share the same contract: ``MemoryStore`` keeps state in
process and ``JsonStore`` keeps it in a directory of JSON files. Every call is
its own read-modify-write cycle and is durable when it returns; there is no
locking, so callers must not interleave writes to the same record.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional, Protocol

from .config import DEFAULT_DESTINATIONS, default_config
from .errors import DuplicateKey, RecordNotFound, StorePathError
from .schema import BatchDigest, MovementEntry, Record, SystemConfig, normalize_number

logger = logging.getLogger(__name__)


def resolve_in_root(root: str | Path, rel: str | Path) -> Path:
    """``rel`` resolved under ``root``; StorePathError if it points outside."""
    base = Path(root).resolve()
    target = (base / rel).resolve()
    if target != base and base not in target.parents:
        raise StorePathError(f"path escapes store root: {rel}")
    return target


class RecordStore(Protocol):
    def list_records(self) -> List[Record]: ...

    def get_record(self, number: object) -> Optional[Record]: ...

    def insert_record(self, record: Record) -> Record: ...

    def replace_record(self, number: object, record: Record) -> Record: ...

    def append_movement(self, entry: MovementEntry) -> MovementEntry: ...

    def list_movements(self) -> List[MovementEntry]: ...

    def get_destinations(self) -> List[str]: ...

    def set_destinations(self, destinations: List[str]) -> None: ...

    def list_digests(self) -> List[BatchDigest]: ...

    def replace_digests(self, digests: List[BatchDigest]) -> None: ...

    def get_config(self) -> SystemConfig: ...

    def set_config(self, config: SystemConfig) -> None: ...


def _index_of(records: List[Record], number: str) -> int:
    for i, rec in enumerate(records):
        if rec.number == number:
            return i
    return -1


def _insert(records: List[Record], record: Record) -> List[Record]:
    if _index_of(records, record.number) != -1:
        raise DuplicateKey(record.number)
    return records + [record]


def _replace(records: List[Record], number: object, record: Record) -> List[Record]:
    key = normalize_number(number)
    idx = _index_of(records, key)
    if idx == -1:
        raise RecordNotFound(key)
    other = _index_of(records, record.number)
    if other != -1 and other != idx:
        raise DuplicateKey(record.number)
    out = list(records)
    out[idx] = record
    return out


def _next_movement(movements: List[MovementEntry], entry: MovementEntry) -> MovementEntry:
    next_id = max((m.id for m in movements), default=0) + 1
    return entry.model_copy(update={"id": next_id})


class MemoryStore:
    def __init__(
        self,
        records: Optional[List[Record]] = None,
        destinations: Optional[List[str]] = None,
        config: Optional[SystemConfig] = None,
    ):
        self._records: List[Record] = []
        for rec in records or []:
            self._records = _insert(self._records, rec)
        self._movements: List[MovementEntry] = []
        self._destinations: List[str] = list(destinations or DEFAULT_DESTINATIONS)
        self._digests: List[BatchDigest] = []
        self._config: SystemConfig = config or default_config()

    def list_records(self) -> List[Record]:
        return [r.model_copy(deep=True) for r in self._records]

    def get_record(self, number: object) -> Optional[Record]:
        idx = _index_of(self._records, normalize_number(number))
        return self._records[idx].model_copy(deep=True) if idx != -1 else None

    def insert_record(self, record: Record) -> Record:
        self._records = _insert(self._records, record.model_copy(deep=True))
        return record

    def replace_record(self, number: object, record: Record) -> Record:
        self._records = _replace(self._records, number, record.model_copy(deep=True))
        return record

    def append_movement(self, entry: MovementEntry) -> MovementEntry:
        stored = _next_movement(self._movements, entry)
        self._movements.append(stored)
        return stored

    def list_movements(self) -> List[MovementEntry]:
        return list(self._movements)

    def get_destinations(self) -> List[str]:
        return list(self._destinations)

    def set_destinations(self, destinations: List[str]) -> None:
        self._destinations = list(destinations)

    def list_digests(self) -> List[BatchDigest]:
        return [d.model_copy(deep=True) for d in self._digests]

    def replace_digests(self, digests: List[BatchDigest]) -> None:
        self._digests = [d.model_copy(deep=True) for d in digests]

    def get_config(self) -> SystemConfig:
        return self._config.model_copy(deep=True)

    def set_config(self, config: SystemConfig) -> None:
        self._config = config.model_copy(deep=True)


class JsonStore:
    """Directory-backed store.

    ``movements.jsonl`` is only ever appended to; the other files are rewritten
    whole through a temporary file. Destinations and config are seeded on first
    use, and every file lives inside ``root``.
    """

    FILES = {
        "records": "records.json",
        "movements": "movements.jsonl",
        "destinations": "destinations.json",
        "config": "config.json",
        "digests": "digests.json",
    }
    SEEDS = {
        "records": list,
        "digests": list,
        "destinations": lambda: list(DEFAULT_DESTINATIONS),
        "config": lambda: default_config().model_dump(mode="json"),
    }

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        for sub in ("logs", "exports"):
            resolve_in_root(self.root, sub).mkdir(parents=True, exist_ok=True)
        for name, seed in self.SEEDS.items():
            if not self._path(name).exists():
                self._write(name, seed())

    @property
    def log_dir(self) -> Path:
        return self.root / "logs"

    def _path(self, name: str) -> Path:
        return resolve_in_root(self.root, self.FILES[name])

    def _read(self, name: str, default: Any) -> Any:
        path = self._path(name)
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, name: str, data: Any) -> None:
        path = self._path(name)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        os.replace(tmp, path)

    def _load_records(self) -> List[Record]:
        return [Record(**r) for r in self._read("records", [])]

    def _save_records(self, records: List[Record]) -> None:
        self._write("records", [r.model_dump(mode="json") for r in records])

    def list_records(self) -> List[Record]:
        return self._load_records()

    def get_record(self, number: object) -> Optional[Record]:
        records = self._load_records()
        idx = _index_of(records, normalize_number(number))
        return records[idx] if idx != -1 else None

    def insert_record(self, record: Record) -> Record:
        self._save_records(_insert(self._load_records(), record))
        return record

    def replace_record(self, number: object, record: Record) -> Record:
        self._save_records(_replace(self._load_records(), number, record))
        return record

    def append_movement(self, entry: MovementEntry) -> MovementEntry:
        stored = _next_movement(self.list_movements(), entry)
        line = json.dumps(stored.model_dump(mode="json"), ensure_ascii=False, separators=(",", ":"))
        with self._path("movements").open("a", encoding="utf-8") as f:
            f.write(line + "\n")
        return stored

    def list_movements(self) -> List[MovementEntry]:
        path = self._path("movements")
        if not path.exists():
            return []
        with path.open("r", encoding="utf-8") as f:
            return [MovementEntry(**json.loads(line)) for line in f if line.strip()]

    def get_destinations(self) -> List[str]:
        return [str(d) for d in self._read("destinations", [])]

    def set_destinations(self, destinations: List[str]) -> None:
        self._write("destinations", list(destinations))

    def list_digests(self) -> List[BatchDigest]:
        return [BatchDigest(**d) for d in self._read("digests", [])]

    def replace_digests(self, digests: List[BatchDigest]) -> None:
        self._write("digests", [d.model_dump(mode="json") for d in digests])

    def get_config(self) -> SystemConfig:
        return SystemConfig(**self._read("config", {}))

    def set_config(self, config: SystemConfig) -> None:
        self._write("config", config.model_dump(mode="json"))


def add_digest(store: RecordStore, digest: BatchDigest) -> BatchDigest:
    store.replace_digests(store.list_digests() + [digest])
    logger.info("stored batch digest %s (%d entries)", digest.id, digest.total)
    return digest


def delete_digest(store: RecordStore, digest_id: str) -> bool:
    """Remove one digest. Records and the movement log are left as they are."""
    digests = store.list_digests()
    kept = [d for d in digests if d.id != digest_id]
    if len(kept) == len(digests):
        return False
    store.replace_digests(kept)
    logger.info("deleted batch digest %s", digest_id)
    return True
