import io

import numpy as np
import pytest
from PIL import Image

from image_service.domain.errors import InvalidShapeError, TransformError, ValidationError
from image_service.domain.services.overlay_service import (
    OverlayService,
    ShapeOverlay,
    TextOverlay,
    arrow_head,
)


def _decode(data: bytes) -> np.ndarray:
    return np.asarray(Image.open(io.BytesIO(data)).convert("RGB"))


def test_text_defaults():
    t = TextOverlay(text="Hello")
    assert (t.x, t.y, t.font_size, t.color) == (10, 50, 24, "red")
    assert t.to_params() == {"text": "Hello", "x": 10, "y": 50, "fontSize": 24, "color": "red"}


@pytest.mark.parametrize("text", ["", "   "])
def test_text_required(text):
    with pytest.raises(ValidationError):
        TextOverlay(text=text)


def test_invalid_color_is_validation_error():
    with pytest.raises(ValidationError, match="Invalid color"):
        TextOverlay(text="x", color="not-a-color")


def test_unknown_shape():
    with pytest.raises(InvalidShapeError):
        ShapeOverlay(shape="triangle")


def test_invalid_shape_is_a_validation_error():
    assert issubclass(InvalidShapeError, ValidationError)


def test_circle_radius_from_width():
    assert ShapeOverlay(shape="circle", width=30).radius == 30
    assert ShapeOverlay(shape="circle").radius == 50
    assert ShapeOverlay(shape="circle", width=30).to_params()["radius"] == 30


def test_rectangle_defaults():
    rect = ShapeOverlay(shape="rectangle")
    assert rect.box == (10, 10, 110, 110)
    params = rect.to_params()
    assert params["width"] == 100 and params["height"] == 100


def test_line_end_point():
    line = ShapeOverlay(shape="line", x=5, y=7, width=20, height=-3)
    assert line.end_point == (25, 4)


def test_arrow_head_points_at_end():
    head = arrow_head((0, 0), (100, 0), 2)
    assert head[0] == (100, 0)
    # both barbs sit behind the tip
    assert all(p[0] < 100 for p in head[1:])


def test_output_format_follows_extension():
    assert OverlayService.output_format(".png") == "PNG"
    assert OverlayService.output_format("jpg") == "JPEG"
    assert OverlayService.output_format(".unknown", "GIF") == "GIF"


def test_text_overlay_changes_pixels(make_png):
    src = make_png(w=200, h=100, color=(255, 255, 255))
    out = OverlayService.apply_overlay(src, TextOverlay(text="Hello", color="black"), ".png")
    before, after = _decode(src), _decode(out)
    assert after.shape == before.shape
    assert (after != before).any()


def test_circle_drawn_with_requested_radius(make_png):
    src = make_png(w=200, h=200, color=(255, 255, 255))
    overlay = ShapeOverlay(shape="circle", x=100, y=100, width=30, color="#ff0000", stroke_width=2)
    arr = _decode(OverlayService.apply_overlay(src, overlay, ".png"))
    # on the ring, not inside and not beyond it
    assert tuple(arr[100, 130]) == (255, 0, 0) or tuple(arr[100, 129]) == (255, 0, 0)
    assert tuple(arr[100, 100]) == (255, 255, 255)
    assert tuple(arr[100, 150]) == (255, 255, 255)


@pytest.mark.parametrize("shape", ["rectangle", "circle", "arrow", "line"])
def test_every_shape_renders(make_png, shape):
    src = make_png(w=150, h=150, color=(255, 255, 255))
    out = OverlayService.apply_overlay(src, ShapeOverlay(shape=shape, x=20, y=20, width=40, height=40), ".png")
    assert (_decode(out) != _decode(src)).any()


def test_jpeg_output(make_png):
    src = make_png(w=80, h=80, fmt="JPEG")
    out = OverlayService.apply_overlay(src, ShapeOverlay(shape="rectangle"), ".jpg")
    assert Image.open(io.BytesIO(out)).format == "JPEG"


def test_undecodable_source():
    with pytest.raises(TransformError):
        OverlayService.apply_overlay(b"not an image", TextOverlay(text="x"), ".png")


@pytest.mark.parametrize(
    "overlay",
    [
        ShapeOverlay(shape="rectangle", width=1e6, height=1e6, stroke_width=200000),
        ShapeOverlay(shape="line", stroke_width=65),
        ShapeOverlay(shape="circle", x=-1e9),
        TextOverlay(text="big", font_size=500),
        TextOverlay(text="far", y=float("inf")),
    ],
)
def test_geometry_beyond_the_image_is_rejected(make_png, overlay):
    with pytest.raises(ValidationError):
        OverlayService.apply_overlay(make_png(), overlay, ".png")


def test_geometry_limits_scale_with_image(make_png):
    overlay = ShapeOverlay(shape="rectangle", width=300, height=300, stroke_width=100)
    with pytest.raises(ValidationError, match="strokeWidth"):
        overlay.check_fits((64, 64))
    out = OverlayService.apply_overlay(make_png(w=200, h=200), overlay, ".png")
    assert Image.open(io.BytesIO(out)).size == (200, 200)
