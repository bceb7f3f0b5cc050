from __future__ import annotations

import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import requests
from PIL import ImageFont

from app.core.errors import FontTimeoutError
from app.core.logger import TaskLogger, logger

FALLBACK_FAMILY = "sans-serif"


@dataclass(frozen=True)
class FontSpec:
    family: str
    weight: int
    path: str  # relative to the font base url (google/fonts repo layout)

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


FONT_REGISTRY: Dict[str, FontSpec] = {
    "modern": FontSpec("Noto Sans SC", 900, "ofl/notosanssc/NotoSansSC[wght].ttf"),
    "elegant": FontSpec("Noto Serif SC", 700, "ofl/notoserifsc/NotoSerifSC[wght].ttf"),
    "calligraphy": FontSpec("Ma Shan Zheng", 400, "ofl/mashanzheng/MaShanZheng-Regular.ttf"),
    "playful": FontSpec("ZCOOL KuaiLe", 400, "ofl/zcoolkuaile/ZCOOLKuaiLe-Regular.ttf"),
    "brush": FontSpec("Zhi Mang Xing", 400, "ofl/zhimangxing/ZhiMangXing-Regular.ttf"),
    "serif": FontSpec("Cinzel", 700, "ofl/cinzel/Cinzel[wght].ttf"),
    "display": FontSpec("Playfair Display", 900, "ofl/playfairdisplay/PlayfairDisplay-Italic[wght].ttf"),
    "handwriting": FontSpec("Dancing Script", 700, "ofl/dancingscript/DancingScript[wght].ttf"),
    "tech": FontSpec("Montserrat", 900, "ofl/montserrat/Montserrat[wght].ttf"),
    "classic": FontSpec("Libre Baskerville", 700, "ofl/librebaskerville/LibreBaskerville-Bold.ttf"),
    "street": FontSpec("Permanent Marker", 400, "apache/permanentmarker/PermanentMarker-Regular.ttf"),
    "cursive": FontSpec("Sacramento", 400, "ofl/sacramento/Sacramento-Regular.ttf"),
}

# Process-wide: family -> font file. Registration is idempotent.
_registered: Dict[str, Path] = {}
_lock = threading.Lock()

# Downloads keep running after a timed-out ensure(); a later call picks up the cached file.
_DOWNLOADS = ThreadPoolExecutor(max_workers=2, thread_name_prefix="font-download")

_SYSTEM_FALLBACKS: List[str] = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Bold.ttc",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/System/Library/Fonts/PingFang.ttc",
    "/System/Library/Fonts/Helvetica.ttc",
    "C:/Windows/Fonts/msyh.ttc",
    "C:/Windows/Fonts/arial.ttf",
]


def registered_path(family: str) -> Optional[Path]:
    with _lock:
        return _registered.get(family)


def _register(family: str, path: Path) -> None:
    with _lock:
        _registered.setdefault(family, path)


def _split_env_paths(name: str) -> List[str]:
    raw = os.environ.get(name) or ""
    return [p.strip() for p in raw.split(",") if p.strip()]


class FontProvider:
    """Resolve a font style id to a loaded font family, with a bounded wait.

    ensure() never raises: on timeout or any failure it logs and returns FALLBACK_FAMILY.
    """

    def __init__(
        self,
        font_dir: str | Path,
        base_url: str = "https://github.com/google/fonts/raw/main",
        timeout_s: float = 2.0,
        fetch: Callable[[str], bytes] | None = None,
    ):
        self.font_dir = Path(font_dir)
        self.base_url = base_url.rstrip("/")
        self.timeout_s = float(timeout_s)
        self._fetch = fetch or self._download
        self._cache: Dict[Tuple[str, int, int], ImageFont.ImageFont] = {}

    @staticmethod
    def styles() -> Dict[str, FontSpec]:
        return dict(FONT_REGISTRY)

    def _download(self, url: str) -> bytes:
        r = requests.get(url, timeout=max(5.0, self.timeout_s * 5))
        r.raise_for_status()
        return r.content

    def _provision(self, spec: FontSpec) -> Path:
        target = self.font_dir / spec.filename
        if not target.exists():
            data = self._fetch(f"{self.base_url}/{spec.path}")
            if not data:
                raise ValueError(f"empty font payload for {spec.family}")
            target.parent.mkdir(parents=True, exist_ok=True)
            # unique temp per download; overlapping first fetches never share it
            with tempfile.NamedTemporaryFile(
                dir=target.parent, prefix=f"{target.name}.", suffix=".part", delete=False
            ) as fh:
                fh.write(data)
                tmp = Path(fh.name)
            try:
                tmp.replace(target)
            except OSError:
                tmp.unlink(missing_ok=True)
                raise
        # Raises OSError when the file is not a usable font.
        ImageFont.truetype(str(target), 16)
        return target

    def ensure(self, font_id: str, task_logger: TaskLogger | None = None) -> str:
        log = task_logger or TaskLogger()
        spec = FONT_REGISTRY.get((font_id or "").strip().lower())
        if spec is None:
            log.warning("unknown font style, using fallback", font_id=font_id, fallback=FALLBACK_FAMILY)
            return FALLBACK_FAMILY

        if registered_path(spec.family) is not None:
            return spec.family

        future = _DOWNLOADS.submit(self._provision, spec)
        try:
            path = future.result(timeout=self.timeout_s)
        except FuturesTimeout:
            err = FontTimeoutError(f"font {spec.family!r} not ready after {self.timeout_s:.1f}s")
            log.warning(str(err), font_id=font_id, fallback=FALLBACK_FAMILY)
            return FALLBACK_FAMILY
        except (requests.RequestException, OSError, ValueError) as exc:
            log.warning("font provisioning failed", font_id=font_id, error=str(exc), fallback=FALLBACK_FAMILY)
            return FALLBACK_FAMILY
        except Exception as exc:
            log.warning(
                "font provisioning failed",
                font_id=font_id,
                error_kind=type(exc).__name__,
                error=str(exc),
                fallback=FALLBACK_FAMILY,
            )
            return FALLBACK_FAMILY

        _register(spec.family, path)
        log.info("font registered", font_id=font_id, family=spec.family, path=str(path))
        return spec.family

    @staticmethod
    def _try_truetype(path: str, size: int) -> Optional[ImageFont.FreeTypeFont]:
        if not Path(path).exists():
            return None
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            return None

    @staticmethod
    def _set_weight(font: ImageFont.FreeTypeFont, weight: int) -> None:
        try:
            axes = font.get_variation_axes()
        except OSError:
            return  # static font
        values = []
        for axis in axes:
            name = axis.get("name")
            if isinstance(name, bytes):
                name = name.decode("utf-8", "ignore")
            if str(name).lower() == "weight":
                values.append(max(axis["minimum"], min(axis["maximum"], weight)))
            else:
                values.append(axis["default"])
        font.set_variation_by_axes(values)

    def font(self, family: str, size: float, weight: int = 400) -> ImageFont.ImageFont:
        px = max(1, int(size))
        key = (family, px, int(weight))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        font: Optional[ImageFont.ImageFont] = None
        path = registered_path(family)
        if path is not None:
            font = self._try_truetype(str(path), px)
            if font is not None:
                self._set_weight(font, int(weight))

        if font is None:
            for candidate in _split_env_paths("FONT_FALLBACK_PATHS") + _SYSTEM_FALLBACKS:
                font = self._try_truetype(candidate, px)
                if font is not None:
                    break

        if font is None:
            logger.debug("no truetype font found, using Pillow default", extra={"props": {"family": family}})
            font = ImageFont.load_default(size=px)

        self._cache[key] = font
        return font
