from __future__ import annotations

import math
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Union

from PIL import Image, ImageColor, ImageDraw, ImageFont, UnidentifiedImageError

from image_service.domain.errors import InvalidShapeError, TransformError, ValidationError

SHAPES = ("rectangle", "circle", "arrow", "line")

DEFAULT_COLOR = "red"
DEFAULT_SHAPE_SIZE = 100
DEFAULT_CIRCLE_RADIUS = 50
DEFAULT_STROKE_WIDTH = 3


def _parse_color(color: str) -> tuple[int, ...]:
    try:
        return ImageColor.getrgb(color)
    except ValueError as exc:
        raise ValidationError(f"Invalid color: {color}") from exc


def _check_within(name: str, value: float, limit: float) -> None:
    if not math.isfinite(value) or abs(value) > limit:
        raise ValidationError(f"{name} must be within ±{limit:g} for this image")


@dataclass(frozen=True)
class TextOverlay:
    text: str
    x: float = 10
    y: float = 50  # baseline
    font_size: float = 24
    color: str = DEFAULT_COLOR

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValidationError("Text is required")
        if self.font_size <= 0:
            raise ValidationError("fontSize must be positive")
        _parse_color(self.color)

    def check_fits(self, size: tuple[int, int]) -> None:
        """Reject geometry far outside an image of ``size`` (width, height)."""
        extent = max(size)
        _check_within("fontSize", self.font_size, extent)
        _check_within("x", self.x, 2 * extent)
        _check_within("y", self.y, 2 * extent)

    def to_params(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "fontSize": self.font_size,
            "color": self.color,
        }


@dataclass(frozen=True)
class ShapeOverlay:
    shape: str
    x: float = 10
    y: float = 10
    width: float | None = None
    height: float | None = None
    color: str = DEFAULT_COLOR
    stroke_width: int = DEFAULT_STROKE_WIDTH

    def __post_init__(self) -> None:
        if self.shape not in SHAPES:
            raise InvalidShapeError(
                f"Invalid shape: {self.shape}. Supported shapes: {', '.join(SHAPES)}"
            )
        if self.stroke_width < 1:
            raise ValidationError("strokeWidth must be at least 1")
        _parse_color(self.color)

    def check_fits(self, size: tuple[int, int]) -> None:
        """Reject geometry far outside an image of ``size`` (width, height)."""
        extent = max(size)
        _check_within("strokeWidth", self.stroke_width, extent)
        for name, value in (("x", self.x), ("y", self.y), ("width", self.width), ("height", self.height)):
            if value is not None:
                _check_within(name, value, 2 * extent)

    @property
    def radius(self) -> float:
        return self.width if self.width else DEFAULT_CIRCLE_RADIUS

    @property
    def box(self) -> tuple[float, float, float, float]:
        w = self.width if self.width is not None else DEFAULT_SHAPE_SIZE
        h = self.height if self.height is not None else DEFAULT_SHAPE_SIZE
        return self.x, self.y, self.x + w, self.y + h

    @property
    def end_point(self) -> tuple[float, float]:
        _, _, x2, y2 = self.box
        return x2, y2

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "shape": self.shape,
            "x": self.x,
            "y": self.y,
            "color": self.color,
            "strokeWidth": self.stroke_width,
        }
        if self.shape == "circle":
            params["radius"] = self.radius
        else:
            x0, y0, x2, y2 = self.box
            params["width"] = x2 - x0
            params["height"] = y2 - y0
        return params


OverlayInstruction = Union[TextOverlay, ShapeOverlay]


class OverlayService:
    """Renders text and shape overlays onto encoded images with Pillow.

    Input and output are encoded image bytes; the output format follows the
    extension the caller stores the result under.
    """

    @staticmethod
    def output_format(ext: str, fallback: str | None = None) -> str:
        ext = ext.lower()
        if not ext.startswith("."):
            ext = f".{ext}"
        return Image.registered_extensions().get(ext) or fallback or "PNG"

    @classmethod
    def apply_overlay(cls, source: bytes, instruction: OverlayInstruction, ext: str) -> bytes:
        try:
            img = Image.open(BytesIO(source))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise TransformError(f"Could not decode source image: {exc}") from exc

        instruction.check_fits(img.size)
        fmt = cls.output_format(ext, img.format)
        canvas = img.convert("RGBA")
        draw = ImageDraw.Draw(canvas)
        if isinstance(instruction, TextOverlay):
            cls._draw_text(draw, instruction)
        else:
            cls._draw_shape(draw, instruction)

        # JPEG and friends have no alpha channel
        out = canvas if fmt in ("PNG", "WEBP", "GIF", "TIFF") else canvas.convert("RGB")
        buf = BytesIO()
        try:
            out.save(buf, format=fmt)
        except (OSError, KeyError, ValueError) as exc:
            raise TransformError(f"Could not encode result as {fmt}: {exc}") from exc
        return buf.getvalue()

    @staticmethod
    def _draw_text(draw: ImageDraw.ImageDraw, overlay: TextOverlay) -> None:
        font = ImageFont.load_default(size=overlay.font_size)
        # y is the text baseline; bitmap fallback fonts have no anchor support
        anchor = "ls" if isinstance(font, ImageFont.FreeTypeFont) else None
        draw.text(
            (overlay.x, overlay.y),
            overlay.text,
            fill=_parse_color(overlay.color),
            font=font,
            anchor=anchor,
        )

    @staticmethod
    def _draw_shape(draw: ImageDraw.ImageDraw, overlay: ShapeOverlay) -> None:
        fill = _parse_color(overlay.color)
        width = int(overlay.stroke_width)
        if overlay.shape == "rectangle":
            x0, y0, x1, y1 = overlay.box
            draw.rectangle(
                [min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1)],
                outline=fill,
                width=width,
            )
        elif overlay.shape == "circle":
            r = abs(overlay.radius)
            draw.ellipse(
                [overlay.x - r, overlay.y - r, overlay.x + r, overlay.y + r],
                outline=fill,
                width=width,
            )
        elif overlay.shape == "line":
            draw.line([(overlay.x, overlay.y), overlay.end_point], fill=fill, width=width)
        else:
            end = overlay.end_point
            draw.line([(overlay.x, overlay.y), end], fill=fill, width=width)
            draw.polygon(arrow_head((overlay.x, overlay.y), end, width), fill=fill)


def arrow_head(
    start: tuple[float, float], end: tuple[float, float], stroke_width: int
) -> list[tuple[float, float]]:
    """Triangle at ``end`` pointing away from ``start``."""
    angle = math.atan2(end[1] - start[1], end[0] - start[0])
    length = max(10.0, stroke_width * 4.0)
    spread = math.pi / 6
    left = (
        end[0] - length * math.cos(angle - spread),
        end[1] - length * math.sin(angle - spread),
    )
    right = (
        end[0] - length * math.cos(angle + spread),
        end[1] - length * math.sin(angle + spread),
    )
    return [end, left, right]
