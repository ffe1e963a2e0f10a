"""
Batch transform runner.

Applies one `ResizeSpec` to every uploaded image. A failing item becomes a
`TransformFailure` and the batch keeps going; results always come back in
input order.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Union

from .codec import DEFAULT_QUALITY, transform_image
from .errors import DecodeError, EmptyBatch, EncodeError, StorageError
from .policy import ResizeSpec
from .workspace import RequestWorkspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedImage:
    path: Path
    original_name: str
    size: int
    media_type: Optional[str] = None


@dataclass(frozen=True)
class TransformSuccess:
    source_name: str
    output_name: str
    output_path: Path
    byte_size: int


@dataclass(frozen=True)
class TransformFailure:
    source_name: str
    error_kind: str
    message: str


TransformResult = Union[TransformSuccess, TransformFailure]


def source_stem(original_name: str) -> str:
    """File stem of a client-supplied name, ignoring any directory part."""
    name = PurePosixPath(original_name.replace("\\", "/")).name
    return PurePosixPath(name).stem or "image"


def _transform_one(
    index: int,
    image: UploadedImage,
    spec: ResizeSpec,
    workspace: RequestWorkspace,
    quality: int,
) -> TransformResult:
    try:
        codec, extension = spec.output_format_for(image.original_name)
        data = transform_image(image.path, spec, codec, quality=quality)
    except (DecodeError, EncodeError) as exc:
        logger.warning("Skipping %s: %s", image.original_name, exc.message)
        return TransformFailure(image.original_name, exc.kind, exc.message)

    output_name = f"{source_stem(image.original_name)}_resized.{extension}"
    output_path = workspace.register(workspace.outputs_dir / f"{index:03d}_{output_name}")
    try:
        output_path.write_bytes(data)
    except OSError as exc:
        raise StorageError(f"Could not write {output_name}: {exc}") from exc

    logger.info("Processed %s -> %s (%d bytes)", image.original_name, output_name, len(data))
    return TransformSuccess(
        source_name=image.original_name,
        output_name=output_name,
        output_path=output_path,
        byte_size=len(data),
    )


def run_batch(
    images: Sequence[UploadedImage],
    spec: ResizeSpec,
    workspace: RequestWorkspace,
    quality: int = DEFAULT_QUALITY,
    max_workers: int = 1,
) -> List[TransformResult]:
    """
    Transform every image and return one result per input, in input order.

    Count and size limits are enforced by the caller. With `max_workers` > 1
    items are transformed on a thread pool; `Executor.map` keeps item i's
    result at index i.

    Raises:
        EmptyBatch: when `images` is empty.
        StorageError: when an output cannot be written to the workspace.
    """
    if not images:
        raise EmptyBatch()

    def work(indexed):
        index, image = indexed
        return _transform_one(index, image, spec, workspace, quality)

    if max_workers <= 1 or len(images) == 1:
        return [work(item) for item in enumerate(images)]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(images))) as pool:
        return list(pool.map(work, enumerate(images)))
