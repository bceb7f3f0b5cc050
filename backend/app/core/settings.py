from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path


def _default_font_dir() -> str:
    return str(Path.home() / ".cache" / "stage-composite" / "fonts")


@dataclass(frozen=True)
class CompositeSettings:
    """Tunables for one pipeline instance.

    Every field can be overridden with an env var named COMPOSITE_<FIELD>,
    e.g. COMPOSITE_PADDING_SCALE=0.7.
    """

    # placement
    padding_scale: float = 0.65
    vertical_bias: float = 0.65

    # cast shadow
    cast_blur_radius: float = 35.0
    cast_opacity: float = 0.2

    # contact shadow
    contact_width_ratio: float = 0.4
    contact_height: float = 15.0
    contact_blur_radius: float = 10.0
    contact_opacity: float = 0.5

    # environment color bleed
    bleed_opacity: float = 0.08

    # text
    detail_size_ratio: float = 0.04
    detail_line_gap: float = 0.85

    # output
    jpeg_quality: int = 95

    # I/O
    font_timeout_s: float = 2.0
    font_dir: str = ""
    font_base_url: str = "https://github.com/google/fonts/raw/main"
    fetch_timeout_s: float = 30.0

    @classmethod
    def from_env(cls) -> "CompositeSettings":
        overrides = {}
        for f in fields(cls):
            raw = (os.getenv(f"COMPOSITE_{f.name.upper()}") or "").strip()
            if not raw:
                continue
            if f.type in ("float", float):
                overrides[f.name] = float(raw)
            elif f.type in ("int", int):
                overrides[f.name] = int(raw)
            else:
                overrides[f.name] = raw

        # legacy / shared names
        font_dir = (os.getenv("FONT_CACHE_DIR") or "").strip()
        if font_dir and "font_dir" not in overrides:
            overrides["font_dir"] = font_dir
        font_base = (os.getenv("FONT_BASE_URL") or "").strip()
        if font_base and "font_base_url" not in overrides:
            overrides["font_base_url"] = font_base
        return cls(**overrides)

    @property
    def resolved_font_dir(self) -> Path:
        return Path(self.font_dir or _default_font_dir())
