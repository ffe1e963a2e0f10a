"""
Resize policy resolution.

Turns the raw text fields of a resize request into a validated, immutable
`ResizeSpec` shared by every item of the batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional, Tuple

from .errors import EncodeError, InvalidParameter

# Output formats a client may request explicitly, keyed by extension.
OUTPUT_FORMATS = {
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
}

# Formats an item may keep when no explicit output format was requested.
INFERRED_FORMATS = {
    **OUTPUT_FORMATS,
    "gif": "GIF",
    "bmp": "BMP",
    "tiff": "TIFF",
    "tif": "TIFF",
}

FORMAT_OPTIONS = [
    {"value": "jpg", "label": "JPEG"},
    {"value": "png", "label": "PNG"},
    {"value": "webp", "label": "WebP"},
]

_FALSE_VALUES = {"false", "0", "no", "off"}

# Largest side Pillow encoders handle reliably (WebP caps at 16383).
MAX_DIMENSION = 16383


@dataclass(frozen=True)
class ResizeSpec:
    width: int
    height: int
    fit_inside: bool = True
    codec: Optional[str] = None  # Pillow format name, None = infer per item
    extension: Optional[str] = None

    def output_format_for(self, filename: str) -> Tuple[str, str]:
        """
        Return the (Pillow codec, file extension) pair used for one item.

        Without an explicit output format each item keeps its own original
        format, so a mixed batch never depends on item order.
        """
        if self.codec and self.extension:
            return self.codec, self.extension
        extension = PurePath(filename).suffix.lstrip(".").lower()
        codec = INFERRED_FORMATS.get(extension)
        if codec is None:
            raise EncodeError(f"Cannot infer an output format for {filename!r}")
        return codec, extension


def _parse_dimension(field: str, raw: Optional[str], max_dimension: int) -> int:
    if raw is None or not str(raw).strip():
        raise InvalidParameter(field, "value is required")
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise InvalidParameter(field, f"{raw!r} is not an integer") from None
    if value <= 0:
        raise InvalidParameter(field, "must be a positive integer")
    if value > max_dimension:
        raise InvalidParameter(field, f"must not exceed {max_dimension}")
    return value


def _parse_aspect_flag(raw: Optional[str]) -> bool:
    if raw is None:
        return True
    return str(raw).strip().lower() not in _FALSE_VALUES


def resolve_resize_spec(
    width: Optional[str],
    height: Optional[str],
    output_format: Optional[str] = None,
    maintain_aspect_ratio: Optional[str] = None,
    max_dimension: int = MAX_DIMENSION,
) -> ResizeSpec:
    """
    Validate raw request parameters into a `ResizeSpec`.

    Raises:
        InvalidParameter: when width or height is missing, non-numeric, <= 0
            or larger than `max_dimension`.
    """
    extension = (output_format or "").strip().lower()
    codec = OUTPUT_FORMATS.get(extension)
    return ResizeSpec(
        width=_parse_dimension("width", width, max_dimension),
        height=_parse_dimension("height", height, max_dimension),
        fit_inside=_parse_aspect_flag(maintain_aspect_ratio),
        codec=codec,
        extension=extension if codec else None,
    )
