from io import BytesIO

import pytest
from PIL import Image

from resize_service.errors import EmptyBatch
from resize_service.policy import ResizeSpec, resolve_resize_spec
from resize_service.runner import (
    TransformFailure,
    TransformSuccess,
    UploadedImage,
    run_batch,
    source_stem,
)
from resize_service.workspace import RequestWorkspace

from conftest import make_image_bytes


@pytest.fixture
def workspace(workspace_root):
    workspace = RequestWorkspace.open(workspace_root)
    yield workspace
    workspace.release_all()


def _upload(workspace, name, data):
    path = workspace.register(workspace.uploads_dir / name)
    path.write_bytes(data)
    return UploadedImage(path=path, original_name=name, size=len(data), media_type="image/png")


def test_empty_batch_fails_fast(workspace):
    with pytest.raises(EmptyBatch):
        run_batch([], ResizeSpec(width=10, height=10), workspace)


@pytest.mark.parametrize("max_workers", [1, 4])
def test_results_keep_input_order(workspace, max_workers):
    uploads = [
        _upload(workspace, f"img{i}.png", make_image_bytes(40 + i * 30, 40))
        for i in range(8)
    ]
    results = run_batch(uploads, ResizeSpec(width=50, height=50), workspace, max_workers=max_workers)

    assert [r.source_name for r in results] == [u.original_name for u in uploads]
    assert all(isinstance(r, TransformSuccess) for r in results)


def test_failure_does_not_abort_batch(workspace):
    uploads = [
        _upload(workspace, "good.png", make_image_bytes(20, 20)),
        _upload(workspace, "bad.png", b"garbage"),
        _upload(workspace, "also_good.png", make_image_bytes(20, 20)),
    ]
    results = run_batch(uploads, ResizeSpec(width=10, height=10), workspace)

    assert isinstance(results[0], TransformSuccess)
    assert isinstance(results[1], TransformFailure)
    assert results[1].error_kind == "DecodeError"
    assert isinstance(results[2], TransformSuccess)


def test_outputs_are_registered_with_workspace(workspace):
    uploads = [_upload(workspace, "a.png", make_image_bytes(30, 30))]
    results = run_batch(uploads, resolve_resize_spec("10", "10", "webp"), workspace)

    success = results[0]
    assert success.output_name == "a_resized.webp"
    assert success.output_path in workspace.tracked_paths()
    assert success.byte_size == success.output_path.stat().st_size
    with Image.open(BytesIO(success.output_path.read_bytes())) as out:
        assert out.size == (10, 10)


def test_inferred_format_follows_each_item(workspace):
    uploads = [
        _upload(workspace, "one.png", make_image_bytes(30, 30)),
        _upload(workspace, "two.jpg", make_image_bytes(30, 30, fmt="JPEG")),
    ]
    results = run_batch(uploads, resolve_resize_spec("10", "10", ""), workspace)
    assert [r.output_name for r in results] == ["one_resized.png", "two_resized.jpg"]


@pytest.mark.parametrize(
    "name, stem",
    [("photo.jpg", "photo"), ("dir/photo.jpg", "photo"), ("C:\\pics\\photo.jpg", "photo"), (".png", ".png")],
)
def test_source_stem(name, stem):
    assert source_stem(name) == stem


def test_resize_failure_is_contained_per_item(workspace):
    uploads = [
        _upload(workspace, "a.png", make_image_bytes(10, 10)),
        _upload(workspace, "b.png", make_image_bytes(10, 10)),
    ]
    results = run_batch(uploads, ResizeSpec(width=2**31, height=1, fit_inside=False), workspace)

    assert [type(r) for r in results] == [TransformFailure, TransformFailure]
    assert {r.error_kind for r in results} == {"EncodeError"}
