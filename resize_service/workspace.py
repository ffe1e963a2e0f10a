"""
Per-request temporary storage.

A `RequestWorkspace` owns every file created while serving one request:
uploaded originals, transformed outputs and the final archive. Everything
lives under one session directory and is removed by `release_all()`.
"""

from __future__ import annotations

import logging
from pathlib import Path
import shutil
from threading import Lock
import time
from typing import List, Optional
import uuid

from .errors import StorageError

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """Millisecond timestamp plus a random suffix, unique across concurrent requests."""
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class RequestWorkspace:
    """
    Tracks the temporary files of one request and deletes them as a unit.

    Layout:
    root/
    └── session-<ms>-<hex>/
        ├── uploads/
        ├── outputs/
        └── resized_images_<ms>.zip
    """

    def __init__(self, session_dir: Path):
        self.session_dir = session_dir
        self.uploads_dir = session_dir / "uploads"
        self.outputs_dir = session_dir / "outputs"
        self._tracked: List[Path] = []
        self._lock = Lock()
        self._released = False

    @classmethod
    def open(cls, root: Path, session_id: Optional[str] = None) -> "RequestWorkspace":
        session_dir = Path(root) / (session_id or new_session_id())
        workspace = cls(session_dir)
        try:
            session_dir.mkdir(parents=True)
        except FileExistsError as exc:
            # Another request owns this directory; leave it alone.
            raise StorageError(f"Session {session_dir.name} already exists") from exc
        except OSError as exc:
            raise StorageError(f"Could not create request workspace: {exc}") from exc
        try:
            workspace.uploads_dir.mkdir()
            workspace.outputs_dir.mkdir()
        except OSError as exc:
            workspace.release_all()
            raise StorageError(f"Could not create request workspace: {exc}") from exc
        logger.debug("Opened workspace %s", session_dir)
        return workspace

    @property
    def released(self) -> bool:
        return self._released

    def register(self, path: Path) -> Path:
        """Track `path` for deletion; safe to call from worker threads."""
        with self._lock:
            if self._released:
                raise StorageError(f"Workspace {self.session_dir.name} is already released")
            self._tracked.append(Path(path))
        return Path(path)

    def tracked_paths(self) -> List[Path]:
        with self._lock:
            return list(self._tracked)

    def release_all(self) -> None:
        """
        Delete every tracked object and the session directory.

        Only the first call deletes anything; deletion problems are logged
        and never raised.
        """
        with self._lock:
            if self._released:
                logger.debug("Workspace %s already released", self.session_dir.name)
                return
            self._released = True
            tracked = list(reversed(self._tracked))
            self._tracked.clear()

        for path in tracked:
            try:
                path.unlink()
            except FileNotFoundError:
                logger.info("Temporary file already gone: %s", path)
            except OSError as exc:
                logger.warning("Failed to delete temporary file %s: %s", path, exc)

        try:
            shutil.rmtree(self.session_dir)
        except FileNotFoundError:
            logger.info("Workspace directory already gone: %s", self.session_dir)
        except OSError as exc:
            logger.warning("Failed to delete workspace %s: %s", self.session_dir, exc)
        else:
            logger.debug("Released workspace %s (%d files)", self.session_dir.name, len(tracked))

    def __enter__(self) -> "RequestWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_all()
