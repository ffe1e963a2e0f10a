import os
from io import BytesIO
from pathlib import Path
import sys
import tempfile

import pytest
from PIL import Image

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("WORKSPACE_ROOT", str(Path(tempfile.gettempdir()) / "resize_service_tests"))

from resize_service.config import Settings  # noqa: E402


def make_image_bytes(width, height, fmt="PNG", mode="RGB", color=(200, 40, 40)):
    if mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    image = Image.new(mode, (width, height), color)
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def residue(root: Path):
    """Everything left under a workspace root."""
    if not root.exists():
        return []
    return list(root.rglob("*"))


@pytest.fixture
def settings(tmp_path):
    return Settings(workspace_root=tmp_path / "work")


@pytest.fixture
def workspace_root(settings):
    return settings.workspace_root
