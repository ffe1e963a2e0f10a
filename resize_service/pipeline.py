"""
High-level batch resize pipeline.

`process_batch` is the main entry point used by both the HTTP API and the
local script. It keeps orchestration simple:
uploads in -> validation -> workspace -> per-item transform -> ZIP out.

The returned `BatchOutcome` still owns its workspace; the caller releases it
once the archive has been delivered.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path, PurePosixPath
import re
import shutil
import time
from typing import BinaryIO, List, Optional, Sequence

from . import config
from .archive import build_archive, plan_entries
from .errors import (
    BatchFailed,
    EmptyBatch,
    FileTooLarge,
    StorageError,
    TooManyFiles,
    UnsupportedFileType,
)
from .policy import ResizeSpec
from .runner import (
    TransformFailure,
    TransformResult,
    TransformSuccess,
    UploadedImage,
    run_batch,
    source_stem,
)
from .workspace import RequestWorkspace

logger = logging.getLogger(__name__)

ACCEPTED_TYPES = re.compile(r"jpeg|jpg|png|gif|webp|bmp|tiff")
COPY_CHUNK_SIZE = 1024 * 1024


@dataclass
class IncomingFile:
    """One received multipart part, before it is copied into a workspace."""

    filename: str
    content_type: Optional[str]
    stream: BinaryIO
    size: Optional[int] = None


@dataclass
class BatchOutcome:
    workspace: RequestWorkspace
    archive_path: Path
    archive_name: str
    results: List[TransformResult]

    @property
    def failures(self) -> List[TransformFailure]:
        return [r for r in self.results if isinstance(r, TransformFailure)]

    @property
    def processed_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r, TransformSuccess))


def is_accepted_image(filename: str, content_type: Optional[str]) -> bool:
    """Both the extension and the declared media type must name a raster format."""
    extension = PurePosixPath(filename.replace("\\", "/")).suffix.lower()
    return bool(ACCEPTED_TYPES.search(extension)) and bool(
        ACCEPTED_TYPES.search((content_type or "").lower())
    )


def validate_submission(files: Sequence[IncomingFile], settings: config.Settings) -> None:
    """
    Reject a submission before any of it is stored.

    Raises:
        EmptyBatch, TooManyFiles, UnsupportedFileType, FileTooLarge
    """
    if not files:
        raise EmptyBatch()
    if len(files) > settings.max_files:
        raise TooManyFiles(settings.max_files)
    for incoming in files:
        if not is_accepted_image(incoming.filename, incoming.content_type):
            raise UnsupportedFileType(incoming.filename)
        if incoming.size is not None and incoming.size > settings.max_file_size_bytes:
            raise FileTooLarge(settings.max_file_size_mb)


def _store_upload(
    index: int,
    incoming: IncomingFile,
    workspace: RequestWorkspace,
    settings: config.Settings,
) -> UploadedImage:
    target = workspace.register(
        workspace.uploads_dir / f"{index:03d}_{source_stem(incoming.filename)}"
    )
    written = 0
    try:
        with open(target, "wb") as out:
            while True:
                chunk = incoming.stream.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > settings.max_file_size_bytes:
                    raise FileTooLarge(settings.max_file_size_mb)
                out.write(chunk)
    except OSError as exc:
        raise StorageError(f"Could not store upload {incoming.filename}: {exc}") from exc
    return UploadedImage(
        path=target,
        original_name=incoming.filename,
        size=written,
        media_type=incoming.content_type,
    )


def store_uploads(
    files: Sequence[IncomingFile],
    workspace: RequestWorkspace,
    settings: config.Settings,
) -> List[UploadedImage]:
    """Copy every part into the workspace, enforcing the per-file size limit."""
    return [_store_upload(i, incoming, workspace, settings) for i, incoming in enumerate(files)]


def process_batch(
    files: Sequence[IncomingFile],
    spec: ResizeSpec,
    settings: Optional[config.Settings] = None,
) -> BatchOutcome:
    """
    Validate, transform and archive one batch.

    On any error the workspace is released before the error propagates; on
    success the caller owns `outcome.workspace` and must release it after
    delivery.

    Raises:
        ResizeServiceError subclasses for validation, storage and archive
        failures, and `BatchFailed` when no item could be transformed.
    """
    settings = settings or config.get_settings()
    validate_submission(files, settings)

    workspace = RequestWorkspace.open(settings.workspace_root)
    try:
        uploads = store_uploads(files, workspace, settings)
        results = run_batch(
            uploads,
            spec,
            workspace,
            quality=settings.output_quality,
            max_workers=settings.max_workers,
        )
        failures = [r for r in results if isinstance(r, TransformFailure)]
        entries = plan_entries(results)
        if not entries:
            names = ", ".join(f.source_name for f in failures)
            raise BatchFailed(f"No image could be processed ({names})")

        archive_name = f"resized_images_{int(time.time() * 1000)}.zip"
        archive_path = workspace.register(workspace.session_dir / archive_name)
        build_archive(
            entries,
            archive_path,
            failures=failures,
            compression_level=settings.zip_compression_level,
        )
    except BaseException:
        workspace.release_all()
        raise

    logger.info(
        "Batch %s done: %d processed, %d failed",
        workspace.session_dir.name,
        len(entries),
        len(failures),
    )
    return BatchOutcome(
        workspace=workspace,
        archive_path=archive_path,
        archive_name=archive_name,
        results=results,
    )


def copy_archive(outcome: BatchOutcome, destination: Path) -> Path:
    """Copy a finished archive out of its workspace, then release the workspace."""
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(outcome.archive_path, destination)
    except OSError as exc:
        raise StorageError(f"Could not copy archive to {destination}: {exc}") from exc
    finally:
        outcome.workspace.release_all()
    return destination
