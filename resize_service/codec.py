"""
Image decoding, resizing and re-encoding.

Pillow does the pixel work; this module only decides the target geometry and
the encoder settings for each output format.
"""

from __future__ import annotations

from io import BytesIO
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image

from .errors import DecodeError, EncodeError
from .policy import ResizeSpec

logger = logging.getLogger(__name__)

LOSSY_FORMATS = {"JPEG", "WEBP"}
DEFAULT_QUALITY = 80


def compute_target_size(width: int, height: int, spec: ResizeSpec) -> Tuple[int, int]:
    """
    Return the output size for a source of `width` x `height`.

    Fit-inside keeps proportions and never enlarges past the source size;
    exact mode returns the requested box as is.
    """
    if not spec.fit_inside:
        return spec.width, spec.height
    scale = min(spec.width / width, spec.height / height)
    if scale >= 1:
        return width, height
    return max(1, round(width * scale)), max(1, round(height * scale))


def _flatten_alpha(image: Image.Image) -> Image.Image:
    """Composite transparent images onto white for formats without alpha."""
    if image.mode == "P":
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA"):
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    if image.mode not in ("RGB", "L"):
        return image.convert("RGB")
    return image


def _prepare_for_codec(image: Image.Image, codec: str) -> Image.Image:
    has_alpha = image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info
    if codec == "JPEG":
        return _flatten_alpha(image)
    if codec == "WEBP" and image.mode not in ("RGB", "RGBA"):
        return image.convert("RGBA" if has_alpha else "RGB")
    if codec == "PNG" and image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I;16"):
        return image.convert("RGBA" if has_alpha else "RGB")
    if codec == "BMP" and image.mode not in ("1", "L", "P", "RGB"):
        return _flatten_alpha(image)
    return image


def _decode(source: Path) -> Image.Image:
    try:
        with Image.open(source) as opened:
            opened.load()
            return opened.copy()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Could not decode {source.name}: {exc}") from exc


def transform_image(
    source: Path,
    spec: ResizeSpec,
    codec: str,
    quality: int = DEFAULT_QUALITY,
) -> bytes:
    """
    Decode `source`, resize it per `spec` and encode it as `codec`.

    Raises:
        DecodeError: when the input cannot be read as an image.
        EncodeError: when Pillow cannot resize the image or write the
            requested format.
    """
    image = _decode(source)

    target = compute_target_size(image.width, image.height, spec)
    if target != image.size:
        try:
            image = image.resize(target, Image.LANCZOS)
        except (OverflowError, ValueError, MemoryError, OSError) as exc:
            raise EncodeError(f"Could not resize {source.name} to {target[0]}x{target[1]}: {exc}") from exc
    logger.debug("Resized %s to %sx%s as %s", source.name, target[0], target[1], codec)

    save_kwargs = {}
    if codec in LOSSY_FORMATS:
        save_kwargs["quality"] = quality
    elif codec == "PNG":
        save_kwargs["optimize"] = True

    buffer = BytesIO()
    try:
        _prepare_for_codec(image, codec).save(buffer, format=codec, **save_kwargs)
    except (OSError, ValueError, KeyError, OverflowError, MemoryError) as exc:
        raise EncodeError(f"Could not encode {source.name} as {codec}: {exc}") from exc
    return buffer.getvalue()
