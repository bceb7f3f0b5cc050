from __future__ import annotations

from PIL import Image, ImageDraw, ImageFilter
import numpy as np

from app.domain.models import PlacementBox, ShadowParams

# Rule table for descriptor -> shadow geometry. Rules run in order and later
# matches overwrite earlier field assignments ("front-left" ends with FRONT_SKEW_X).
DEFAULT_SKEW_X = 0.5
DEFAULT_SCALE_Y = 0.3
DEFAULT_OFFSET_X = 10.0
DEFAULT_OFFSET_Y = 5.0

LEFT_SKEW_X = 0.6
RIGHT_SKEW_X = -0.6
FRONT_SKEW_X, FRONT_OFFSET_Y = 0.1, 20.0
BACK_SKEW_X, BACK_OFFSET_Y = 0.2, -10.0
HIGH_ANGLE_SCALE_Y = 0.6
EYE_LEVEL_SCALE_Y = 0.25


def derive_params(lighting: str | None, perspective: str | None) -> ShadowParams:
    """Map semantic lighting / perspective descriptors to a cast-shadow transform.

    Pure substring matching on lower-cased input; identical input always yields
    identical output.
    """
    light = (lighting or "").lower()
    persp = (perspective or "").lower()

    skew_x = DEFAULT_SKEW_X
    scale_y = DEFAULT_SCALE_Y
    offset_x = DEFAULT_OFFSET_X
    offset_y = DEFAULT_OFFSET_Y

    if "left" in light:
        skew_x = LEFT_SKEW_X
    elif "right" in light:
        skew_x = RIGHT_SKEW_X

    if "front" in light:
        skew_x, offset_y = FRONT_SKEW_X, FRONT_OFFSET_Y
    elif "back" in light:
        skew_x, offset_y = BACK_SKEW_X, BACK_OFFSET_Y

    if "top-down" in persp or "high" in persp:
        scale_y = HIGH_ANGLE_SCALE_Y
    elif "eye-level" in persp:
        scale_y = EYE_LEVEL_SCALE_Y

    return ShadowParams(skew_x=skew_x, scale_y=scale_y, offset_x=offset_x, offset_y=offset_y)


def _apply_opacity(mask: Image.Image, opacity: float) -> Image.Image:
    # Output is a mask where 255 is "full shadow opacity";
    # opacity 0.2 caps the darkest value at 255 * 0.2 = 51.
    if opacity >= 1.0:
        return mask
    arr = np.array(mask).astype(np.float32) * max(0.0, float(opacity))
    return Image.fromarray(np.clip(np.rint(arr), 0, 255).astype(np.uint8), mode="L")


class ShadowService:
    def silhouette(self, cutout: Image.Image, size: tuple[int, int] | None = None) -> Image.Image:
        """Alpha -> solid shadow mask (L mode, 255 = fully dark) at the placement size."""
        if cutout.mode != "RGBA":
            cutout = cutout.convert("RGBA")
        if size is not None and cutout.size != size:
            cutout = cutout.resize(size, Image.Resampling.LANCZOS)
        return cutout.split()[-1].convert("L")

    def render_cast_shadow(
        self,
        silhouette: Image.Image,
        box: PlacementBox,
        params: ShadowParams,
        canvas_size: tuple[int, int],
        blur_radius: float = 35.0,
        opacity: float = 0.2,
    ) -> Image.Image:
        """Project the silhouette through [1, 0, skew_x, scale_y, tx, ty].

        The forward map takes a silhouette point (x, y), with y in [-h, 0] measured up
        from its bottom edge, to canvas (x + skew_x * y + tx, scale_y * y + ty), where
        tx = box.x + offset_x and ty = box.bottom + offset_y. The bottom edge therefore
        stays on the floor line under the subject and the top is flattened/sheared.
        Returns a canvas-sized L mask.
        """
        if silhouette.mode != "L":
            silhouette = silhouette.convert("L")
        if params.scale_y == 0:
            return Image.new("L", canvas_size, 0)

        sh = silhouette.size[1]
        skew, scale = float(params.skew_x), float(params.scale_y)
        tx = box.x + params.offset_x
        ty = box.bottom + params.offset_y

        # PIL wants the inverse map: output (X, Y) -> input (u, v), with v = y + h.
        a = 1.0
        b = -skew / scale
        c = skew * ty / scale - tx
        d = 0.0
        e = 1.0 / scale
        f = sh - ty / scale

        shadow = silhouette.transform(
            canvas_size,
            Image.Transform.AFFINE,
            (a, b, c, d, e, f),
            resample=Image.Resampling.BILINEAR,
            fillcolor=0,
        )
        if blur_radius > 0:
            shadow = shadow.filter(ImageFilter.GaussianBlur(blur_radius))
        return _apply_opacity(shadow, opacity)

    def render_contact_shadow(
        self,
        box: PlacementBox,
        canvas_size: tuple[int, int],
        width_ratio: float = 0.4,
        height: float = 15.0,
        blur_radius: float = 10.0,
        opacity: float = 0.5,
    ) -> Image.Image:
        """Soft ellipse at the subject's base, independent of the lighting heuristic."""
        shadow = Image.new("L", canvas_size, 0)
        rx = box.w * width_ratio / 2.0
        ry = height / 2.0
        cx, cy = box.center_x, box.bottom
        ImageDraw.Draw(shadow).ellipse((cx - rx, cy - ry, cx + rx, cy + ry), fill=255)
        if blur_radius > 0:
            shadow = shadow.filter(ImageFilter.GaussianBlur(blur_radius))
        return _apply_opacity(shadow, opacity)
