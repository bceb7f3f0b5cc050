from __future__ import annotations

from app.domain.models import PlacementBox


def fit(
    canvas_w: float,
    canvas_h: float,
    fg_w: float,
    fg_h: float,
    padding_scale: float = 0.65,
    vertical_bias: float = 0.65,
) -> PlacementBox:
    """Aspect-preserving placement of the foreground inside the canvas.

    - A foreground wider (relative) than the canvas is width-constrained to
      canvas_w * padding_scale, otherwise height-constrained to canvas_h * padding_scale.
    - Centered horizontally; vertically anchored at (canvas_h - h) * vertical_bias so the
      subject sits low and leaves headroom for the cast shadow and the title.
    """
    if canvas_w <= 0 or canvas_h <= 0:
        raise ValueError(f"canvas size must be positive, got {canvas_w}x{canvas_h}")
    if fg_w <= 0 or fg_h <= 0:
        raise ValueError(f"foreground size must be positive, got {fg_w}x{fg_h}")
    if not (0 < padding_scale <= 1):
        raise ValueError(f"padding_scale must be in (0, 1], got {padding_scale}")
    if not (0 <= vertical_bias <= 1):
        raise ValueError(f"vertical_bias must be in [0, 1], got {vertical_bias}")

    canvas_aspect = canvas_w / canvas_h
    fg_aspect = fg_w / fg_h

    if fg_aspect > canvas_aspect:
        w = canvas_w * padding_scale
        h = w / fg_aspect
    else:
        h = canvas_h * padding_scale
        w = h * fg_aspect

    x = (canvas_w - w) / 2.0
    y = (canvas_h - h) * vertical_bias
    return PlacementBox(x=x, y=y, w=w, h=h)
