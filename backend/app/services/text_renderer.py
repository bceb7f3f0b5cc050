from __future__ import annotations

from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFilter

from app.domain.models import TextStyle, parse_color
from app.services.fonts import FONT_REGISTRY, FontProvider

TEXT_SHADOW_ALPHA = 0.5
CHIP_FILL = "rgba(0,0,0,0.3)"
CHIP_PAD_X = 20
CHIP_PAD_Y = 8
CHIP_RADIUS = 30
DETAIL_WEIGHT = 400


@dataclass(frozen=True)
class TextLayout:
    center_x: float
    title_size: float
    title_y: float
    detail_size: float
    detail_y: float
    shadow_blur: float
    shadow_offset: float


def layout_text(
    canvas_w: int,
    canvas_h: int,
    style: TextStyle,
    detail_size_ratio: float = 0.04,
    detail_line_gap: float = 0.85,
) -> TextLayout:
    title_size = canvas_w * float(style.font_size) / 100.0
    title_y = canvas_h * float(style.position_y) / 100.0
    detail_y = title_y + title_size * detail_line_gap
    return TextLayout(
        center_x=canvas_w / 2.0,
        title_size=title_size,
        title_y=title_y,
        detail_size=canvas_w * detail_size_ratio,
        detail_y=detail_y,
        shadow_blur=float(style.shadow_intensity),
        shadow_offset=float(style.shadow_intensity) / 4.0,
    )


class TextRenderer:
    def __init__(self, fonts: FontProvider, detail_size_ratio: float = 0.04, detail_line_gap: float = 0.85):
        self.fonts = fonts
        self.detail_size_ratio = detail_size_ratio
        self.detail_line_gap = detail_line_gap

    def render(self, buffer: Image.Image, style: TextStyle, family: str) -> None:
        """Draw title/detail onto the RGBA buffer in place. Empty style leaves it untouched."""
        if style.is_empty:
            return
        if buffer.mode != "RGBA":
            raise ValueError(f"text buffer must be RGBA, got {buffer.mode}")

        w, h = buffer.size
        layout = layout_text(w, h, style, self.detail_size_ratio, self.detail_line_gap)
        spec = FONT_REGISTRY.get(style.font_style)
        title_weight = spec.weight if spec else 900

        if style.title:
            font = self.fonts.font(family, layout.title_size, title_weight)
            pos = (layout.center_x, layout.title_y)
            fill = parse_color(style.main_color)
            if layout.shadow_blur > 0:
                self._draw_drop_shadow(buffer, style.title, font, pos, layout, fill[3] / 255.0)
            self._draw_text(buffer, style.title, font, pos, fill)

        if style.detail:
            font = self.fonts.font(family, layout.detail_size, DETAIL_WEIGHT)
            pos = (layout.center_x, layout.detail_y)
            if style.detail_chip:
                self._draw_chip(buffer, style.detail, font, pos, layout.detail_size)
            self._draw_text(buffer, style.detail, font, pos, parse_color(style.detail_color))

    @staticmethod
    def _draw_text(buffer, text, font, pos, fill) -> None:
        layer = Image.new("RGBA", buffer.size, (0, 0, 0, 0))
        ImageDraw.Draw(layer).text(pos, text, font=font, fill=fill, anchor="mm")
        buffer.alpha_composite(layer)

    @staticmethod
    def _draw_drop_shadow(buffer, text, font, pos, layout: TextLayout, fill_alpha: float = 1.0) -> None:
        # scaled by the glyph fill alpha
        strength = TEXT_SHADOW_ALPHA * max(0.0, min(1.0, fill_alpha))
        if strength <= 0:
            return
        mask = Image.new("L", buffer.size, 0)
        x, y = pos
        off = layout.shadow_offset
        ImageDraw.Draw(mask).text((x + off, y + off), text, font=font, fill=255, anchor="mm")
        # canvas shadowBlur ~ 2 * gaussian sigma
        mask = mask.filter(ImageFilter.GaussianBlur(layout.shadow_blur / 2.0))
        mask = mask.point(lambda p: int(p * strength))
        shadow = Image.new("RGBA", buffer.size, (0, 0, 0, 0))
        shadow.putalpha(mask)
        buffer.alpha_composite(shadow)

    @staticmethod
    def _draw_chip(buffer, text, font, pos, size: float) -> None:
        layer = Image.new("RGBA", buffer.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        x0, _, x1, _ = draw.textbbox(pos, text, font=font, anchor="mm")
        cx, cy = pos
        half_w = (x1 - x0) / 2.0 + CHIP_PAD_X
        half_h = size / 2.0 + CHIP_PAD_Y
        draw.rounded_rectangle(
            (cx - half_w, cy - half_h, cx + half_w, cy + half_h),
            radius=int(min(CHIP_RADIUS, half_h)),
            fill=parse_color(CHIP_FILL),
        )
        buffer.alpha_composite(layer)
