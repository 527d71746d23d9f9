from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("song_sim.store")


class SnapshotStore(Protocol):
    """Where encoded world snapshots live between turns, one per slot."""

    def save(self, slot: str, payload: str) -> None: ...

    def load(self, slot: str) -> str | None: ...


class InMemorySnapshotStore:
    def __init__(self) -> None:
        self._slots: dict[str, str] = {}

    def save(self, slot: str, payload: str) -> None:
        self._slots[slot] = payload

    def load(self, slot: str) -> str | None:
        return self._slots.get(slot)


class FileSnapshotStore:
    """One JSON file per slot. Writes go through a temp file and ``os.replace``."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def slot_path(self, slot: str) -> Path:
        if slot == "default":
            return self.path
        return self.path.with_name(f"{self.path.stem}.{slot}{self.path.suffix}")

    def save(self, slot: str, payload: str) -> None:
        target = self.slot_path(slot)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Snapshot saved: slot=%s path=%s bytes=%d", slot, target, len(payload))

    def load(self, slot: str) -> str | None:
        target = self.slot_path(slot)
        if not target.exists():
            return None
        return target.read_text(encoding="utf-8")
