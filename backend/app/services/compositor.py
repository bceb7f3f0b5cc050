from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from PIL import Image, ImageChops

from app.core.errors import CompositingError
from app.domain.models import GenerationMode, PlacementBox


def _overlay(base: np.ndarray, blend: np.ndarray) -> np.ndarray:
    """Overlay blend on float arrays in [0, 1]; `base` is the layer being lit."""
    low = 2.0 * base * blend
    high = 1.0 - 2.0 * (1.0 - base) * (1.0 - blend)
    return np.where(base < 0.5, low, high)


class Compositor:
    @staticmethod
    def apply_shadow(buffer: Image.Image, shadow_mask: Image.Image) -> Image.Image:
        """Darken the buffer with a shadow mask (0=transparent, 255=max shadow darkness).

        Multiplying by the inverted mask is the same as drawing black at the mask's alpha.
        """
        w, h = buffer.size
        if shadow_mask.size != (w, h):
            raise CompositingError(f"shadow layer size {shadow_mask.size} != canvas size {(w, h)}")

        shadow_multiplier = ImageChops.invert(shadow_mask.convert("L")).convert("RGB")
        r, g, b, a = buffer.split()
        shadowed = ImageChops.multiply(Image.merge("RGB", (r, g, b)), shadow_multiplier)
        return Image.merge("RGBA", (*shadowed.split(), a))

    @staticmethod
    def color_bleed(
        buffer: Image.Image,
        background: Image.Image,
        cutout_alpha: Image.Image,
        pixel_box: tuple[int, int, int, int],
        opacity: float = 0.08,
    ) -> Image.Image:
        """Overlay the stage under the box onto the subject at low opacity (ambient light transfer)."""
        if opacity <= 0:
            return buffer
        x, y, w, h = pixel_box
        region = (x, y, x + w, y + h)

        fg = np.asarray(buffer.crop(region).convert("RGB"), dtype=np.float32) / 255.0
        env = np.asarray(background.crop(region).convert("RGB"), dtype=np.float32) / 255.0
        a = np.asarray(cutout_alpha.convert("L"), dtype=np.float32) / 255.0
        if a.shape != fg.shape[:2]:
            raise CompositingError(f"cutout alpha {a.shape} does not match box {fg.shape[:2]}")

        weight = (a * float(opacity))[..., None]
        out = fg * (1.0 - weight) + _overlay(fg, env) * weight
        out_img = Image.fromarray(np.clip(out * 255.0 + 0.5, 0, 255).astype(np.uint8), mode="RGB")

        result = buffer.copy()
        patch = out_img.convert("RGBA")
        patch.putalpha(buffer.crop(region).split()[-1])
        result.paste(patch, (x, y))
        return result

    def compose(
        self,
        background: Image.Image,
        shadow_layers: Sequence[Image.Image],
        cutout: Optional[Image.Image],
        box: Optional[PlacementBox],
        mode: GenerationMode,
        bleed_opacity: float = 0.08,
        canvas_size: tuple[int, int] | None = None,
    ) -> Image.Image:
        """Assemble the working buffer, bottom to top:

        1. background filled to the full canvas
        2. cast shadow, 3. contact shadow (in the given order)
        4. foreground cutout at `box`
        5. environment color bleed over the foreground

        In creative mode only step 1 runs.
        """
        size = canvas_size or background.size
        buffer = background.convert("RGBA")
        if buffer.size != size:
            buffer = buffer.resize(size, Image.Resampling.LANCZOS)
        else:
            buffer = buffer.copy()
        stage = buffer.copy()

        if mode is GenerationMode.CREATIVE:
            return buffer

        if cutout is None or box is None:
            raise CompositingError("precision compositing requires a foreground cutout and placement box")
        if box.w <= 0 or box.h <= 0:
            raise CompositingError(f"empty placement box: {box}")

        for layer in shadow_layers:
            buffer = self.apply_shadow(buffer, layer)

        x, y, w, h = box.to_pixels(size)
        fg = cutout.convert("RGBA")
        if fg.size != (w, h):
            fg = fg.resize((w, h), Image.Resampling.LANCZOS)

        product_layer = Image.new("RGBA", size, (0, 0, 0, 0))
        product_layer.paste(fg, (x, y))
        buffer = Image.alpha_composite(buffer, product_layer)

        return self.color_bleed(buffer, stage, fg.split()[-1], (x, y, w, h), opacity=bleed_opacity)
