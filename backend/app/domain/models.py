from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from PIL import Image, ImageColor


DEFAULT_LIGHTING = "soft light from top-left"
DEFAULT_PERSPECTIVE = "eye-level straight on"
DEFAULT_COLOR_TEMPERATURE = "natural daylight"


class GenerationMode(str, Enum):
    PRECISION = "precision"
    CREATIVE = "creative"

    @classmethod
    def parse(cls, value: "str | GenerationMode | None") -> "GenerationMode":
        if isinstance(value, cls):
            return value
        v = (value or "precision").strip().lower()
        try:
            return cls(v)
        except ValueError:
            raise ValueError(f"unknown generation mode: {value!r}") from None


@dataclass(frozen=True)
class PhysicalSpecs:
    lighting_direction: str = DEFAULT_LIGHTING
    camera_perspective: str = DEFAULT_PERSPECTIVE
    color_temperature: str = DEFAULT_COLOR_TEMPERATURE

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "PhysicalSpecs":
        """Build specs from analysis output; absent or blank fields become neutral defaults.

        Accepts both camelCase (lightingDirection) and snake_case keys.
        """
        data = data or {}

        def pick(snake: str, camel: str, default: str) -> str:
            v = data.get(snake)
            if v is None:
                v = data.get(camel)
            v = str(v).strip() if v is not None else ""
            return v or default

        return cls(
            lighting_direction=pick("lighting_direction", "lightingDirection", DEFAULT_LIGHTING),
            camera_perspective=pick("camera_perspective", "cameraPerspective", DEFAULT_PERSPECTIVE),
            color_temperature=pick("color_temperature", "colorTemperature", DEFAULT_COLOR_TEMPERATURE),
        )


@dataclass(frozen=True)
class ShadowParams:
    skew_x: float
    scale_y: float
    offset_x: float
    offset_y: float


@dataclass(frozen=True)
class PlacementBox:
    x: float
    y: float
    w: float
    h: float

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center_x(self) -> float:
        return self.x + self.w / 2.0

    @property
    def aspect(self) -> float:
        return self.w / self.h

    def to_pixels(self, canvas_size: Tuple[int, int] | None = None) -> Tuple[int, int, int, int]:
        """Integer (x, y, w, h) for blits; clamped inside the canvas when given."""
        x, y = int(round(self.x)), int(round(self.y))
        w, h = max(1, int(round(self.w))), max(1, int(round(self.h)))
        if canvas_size is not None:
            cw, ch = canvas_size
            w, h = min(w, cw), min(h, ch)
            x = max(0, min(x, cw - w))
            y = max(0, min(y, ch - h))
        return x, y, w, h


_RGBA_RE = re.compile(
    r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)$",
    re.IGNORECASE,
)


def parse_color(value: str) -> Tuple[int, int, int, int]:
    """CSS-ish color -> RGBA tuple. rgba() alpha is a float in [0, 1]."""
    v = (value or "").strip()
    m = _RGBA_RE.match(v)
    if m:
        r, g, b = (max(0, min(255, int(m.group(i)))) for i in (1, 2, 3))
        a = m.group(4)
        alpha = 255 if a is None else int(round(max(0.0, min(1.0, float(a))) * 255))
        return r, g, b, alpha
    rgba = ImageColor.getcolor(v, "RGBA")
    return tuple(rgba)  # type: ignore[return-value]


@dataclass(frozen=True)
class TextStyle:
    title: str = ""
    detail: str = ""
    font_style: str = "modern"
    main_color: str = "#FFFFFF"
    sub_color: str = "rgba(255,255,255,0.7)"
    font_size: float = 8.0  # percent of canvas width
    shadow_intensity: float = 20.0
    position_y: float = 82.0  # percent of canvas height
    detail_chip: bool = False

    def __post_init__(self):
        if not (0 < float(self.font_size) <= 100):
            raise ValueError(f"font_size must be in (0, 100], got {self.font_size}")
        if float(self.shadow_intensity) < 0:
            raise ValueError(f"shadow_intensity must be >= 0, got {self.shadow_intensity}")
        if not (0 <= float(self.position_y) <= 100):
            raise ValueError(f"position_y must be in [0, 100], got {self.position_y}")
        parse_color(self.main_color)
        if self.sub_color:
            parse_color(self.sub_color)

    @property
    def is_empty(self) -> bool:
        return not self.title and not self.detail

    @property
    def detail_color(self) -> str:
        return self.sub_color or self.main_color


@dataclass
class SynthesisResult:
    image_bytes: bytes
    width: int
    height: int
    mode: GenerationMode
    trace_id: str
    font_family: str
    placement: Optional[PlacementBox] = None
    shadow_params: Optional[ShadowParams] = None
    states: list = field(default_factory=list)


def alpha_of(image: Image.Image) -> Image.Image:
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    return image.split()[-1].convert("L")
