"""ZIP packaging of transformed images."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional, Sequence
import zipfile

from .errors import ArchiveError
from .runner import TransformFailure, TransformResult, TransformSuccess

logger = logging.getLogger(__name__)

FAILURES_MANIFEST = "failures.json"


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    source: Path


def plan_entries(results: Iterable[TransformResult]) -> List[ArchiveEntry]:
    """
    Map successful results to archive entries with collision-free names.

    A repeated name gets `_2`, `_3`, ... appended to its stem, in input order.
    """
    used: set[str] = set()
    entries: List[ArchiveEntry] = []
    for result in results:
        if not isinstance(result, TransformSuccess):
            continue
        name = result.output_name
        if name in used:
            stem, suffix = PurePosixPath(name).stem, PurePosixPath(name).suffix
            counter = 2
            while f"{stem}_{counter}{suffix}" in used:
                counter += 1
            name = f"{stem}_{counter}{suffix}"
        used.add(name)
        entries.append(ArchiveEntry(name=name, source=result.output_path))
    return entries


def _failures_manifest(failures: Sequence[TransformFailure]) -> str:
    return json.dumps(
        [{"source": f.source_name, "error": f.error_kind, "message": f.message} for f in failures],
        indent=2,
    )


def build_archive(
    entries: Sequence[ArchiveEntry],
    archive_path: Path,
    failures: Optional[Sequence[TransformFailure]] = None,
    compression_level: int = 9,
) -> Path:
    """
    Write `entries` into a deflate-compressed ZIP at `archive_path`.

    Each entry is copied from disk in chunks by `ZipFile.write`, so outputs
    are never all held in memory. The archive is closed, trailer included,
    before this returns.

    Raises:
        ArchiveError: when any part of the archive cannot be written.
    """
    try:
        with zipfile.ZipFile(
            archive_path,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        ) as zf:
            for entry in entries:
                zf.write(entry.source, arcname=entry.name)
            if failures:
                zf.writestr(FAILURES_MANIFEST, _failures_manifest(failures))
        total_bytes = archive_path.stat().st_size
    except (OSError, ValueError, zipfile.BadZipFile) as exc:
        raise ArchiveError(f"Could not create archive: {exc}") from exc

    logger.info("Archive created: %d total bytes (%d entries)", total_bytes, len(entries))
    return archive_path
