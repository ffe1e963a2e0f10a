import pytest

from resize_service.errors import EncodeError, InvalidParameter
from resize_service.policy import resolve_resize_spec


def test_resolves_explicit_values():
    spec = resolve_resize_spec("800", "600", "webp", "true")
    assert spec.width == 800
    assert spec.height == 600
    assert spec.fit_inside is True
    assert spec.codec == "WEBP"
    assert spec.output_format_for("a.png") == ("WEBP", "webp")


def test_jpg_alias_keeps_extension():
    spec = resolve_resize_spec("10", "10", " JPG ")
    assert spec.output_format_for("a.png") == ("JPEG", "jpg")


@pytest.mark.parametrize("width", [None, "", "abc", "0", "-5", "12.5"])
def test_rejects_bad_width(width):
    with pytest.raises(InvalidParameter) as info:
        resolve_resize_spec(width, "100")
    assert info.value.field == "width"
    assert info.value.status_code == 400


def test_rejects_bad_height():
    with pytest.raises(InvalidParameter) as info:
        resolve_resize_spec("100", "0")
    assert info.value.field == "height"


@pytest.mark.parametrize(
    "flag, expected",
    [(None, True), ("true", True), ("garbage", True), ("false", False), ("0", False), ("OFF", False)],
)
def test_aspect_flag_defaults_to_fit_inside(flag, expected):
    assert resolve_resize_spec("1", "1", None, flag).fit_inside is expected


def test_unsupported_format_infers_per_item():
    spec = resolve_resize_spec("100", "100", "bmp")
    assert spec.codec is None
    assert spec.output_format_for("one.png") == ("PNG", "png")
    assert spec.output_format_for("two.JPEG") == ("JPEG", "jpeg")
    assert spec.output_format_for("three.gif") == ("GIF", "gif")


def test_inference_fails_for_unknown_extension():
    spec = resolve_resize_spec("100", "100")
    with pytest.raises(EncodeError):
        spec.output_format_for("readme")


@pytest.mark.parametrize("field, args", [("width", ("16384", "10")), ("height", ("10", "2147483648"))])
def test_rejects_dimensions_above_limit(field, args):
    with pytest.raises(InvalidParameter) as info:
        resolve_resize_spec(*args)
    assert info.value.field == field
    assert "16383" in info.value.reason


def test_dimension_limit_is_configurable():
    assert resolve_resize_spec("500", "500", max_dimension=500).width == 500
    with pytest.raises(InvalidParameter):
        resolve_resize_spec("501", "500", max_dimension=500)
