"""Durable tier: one whole-document snapshot per shared space."""
from __future__ import annotations

import abc
import asyncio
import contextlib
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

SNAPSHOT_FILENAME = "context.json"
ARTIFACTS_DIRNAME = "artifacts"


class SnapshotStore(abc.ABC):
    """Key-value persistence for space snapshots and their raw artifacts."""

    @abc.abstractmethod
    async def load(self, space_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored snapshot, or ``None`` when nothing usable exists."""

    @abc.abstractmethod
    async def save(self, snapshot: Dict[str, Any]) -> None:
        """Overwrite the snapshot stored under ``snapshot["id"]``."""

    @abc.abstractmethod
    async def delete(self, space_id: str) -> None:
        """Remove the snapshot and every artifact of the space."""

    @abc.abstractmethod
    async def write_artifact(self, space_id: str, filename: str, content: str) -> str:
        """Store raw artifact content and return its location."""

    @abc.abstractmethod
    async def read_artifact(self, location: str) -> Optional[str]:
        """Read artifact content, ``None`` when it cannot be read."""


class FileSnapshotStore(SnapshotStore):
    """Filesystem layout ``<base>/<space_id>/context.json`` + ``artifacts/``.

    Saves write a temporary file beside the snapshot and rename it over the
    old one, so readers see either the previous or the new document. A file
    that still fails to parse loads as missing.
    """

    def __init__(self, base_dir: Union[str, Path]) -> None:
        self.base_dir = Path(base_dir)

    def _space_dir(self, space_id: str) -> Path:
        if not space_id or space_id in (".", "..") or Path(space_id).name != space_id:
            raise ValueError(f"Invalid space id: {space_id!r}")
        return self.base_dir / space_id

    async def load(self, space_id: str) -> Optional[Dict[str, Any]]:
        path = self._space_dir(space_id) / SNAPSHOT_FILENAME
        return await asyncio.to_thread(self._read_json, path)

    @staticmethod
    def _read_json(path: Path) -> Optional[Dict[str, Any]]:
        try:
            return json.loads(path.read_text("utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("snapshot.load_failed", path=str(path), error=str(exc))
            return None

    async def save(self, snapshot: Dict[str, Any]) -> None:
        space_dir = self._space_dir(str(snapshot["id"]))
        document = json.dumps(snapshot, indent=2, ensure_ascii=False)
        await asyncio.to_thread(self._write_text, space_dir / SNAPSHOT_FILENAME, document)

    @staticmethod
    def _write_text(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, path)
        except OSError:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise

    async def delete(self, space_id: str) -> None:
        space_dir = self._space_dir(space_id)
        await asyncio.to_thread(shutil.rmtree, space_dir, True)

    async def write_artifact(self, space_id: str, filename: str, content: str) -> str:
        name = Path(filename).name
        if not name or name in (".", ".."):
            raise ValueError(f"Invalid artifact name: {filename!r}")
        path = self._space_dir(space_id) / ARTIFACTS_DIRNAME / name
        await asyncio.to_thread(self._write_text, path, content)
        return str(path)

    async def read_artifact(self, location: str) -> Optional[str]:
        return await asyncio.to_thread(self._read_text, Path(location))

    @staticmethod
    def _read_text(path: Path) -> Optional[str]:
        try:
            return path.read_text("utf-8")
        except (OSError, UnicodeDecodeError):
            return None
