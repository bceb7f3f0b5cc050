from __future__ import annotations

import base64
import binascii
import io
from pathlib import Path
from typing import Union
from urllib.parse import urlsplit, urlunsplit

import requests
from PIL import Image, UnidentifiedImageError

from app.core.errors import AssetLoadError

Source = Union[bytes, bytearray, str, Path]


def _redact_url(u: str) -> str:
    # Avoid leaking query tokens (signed CDN urls etc.) in errors/logs.
    try:
        sp = urlsplit(u)
        return urlunsplit((sp.scheme, sp.netloc, sp.path, "", ""))
    except ValueError:
        return u


def describe(source: Source) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    s = str(source)
    if s.startswith("data:"):
        return s.split(",", 1)[0] + ",..."
    if s.startswith(("http://", "https://")):
        return _redact_url(s)
    if len(s) > 80:
        return s[:40] + "..."
    return s


def _b64_to_bytes(b64: str) -> bytes:
    if "," in b64:
        b64 = b64.split(",", 1)[1]
    return base64.b64decode(b64, validate=False)


class AssetLoader:
    """Fetch + decode raster inputs (background plate, product photo).

    Sources: raw bytes, data: URLs, bare base64, http(s) URLs, local paths.
    """

    def __init__(self, timeout: float = 30.0, session: requests.Session | None = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def load_bytes(self, source: Source) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            if not source:
                raise AssetLoadError("empty image payload")
            return bytes(source)

        if isinstance(source, Path):
            return self._read_file(source)

        s = (source or "").strip()
        if not s:
            raise AssetLoadError("empty image source")

        if s.startswith("data:"):
            try:
                return _b64_to_bytes(s)
            except (binascii.Error, ValueError) as exc:
                raise AssetLoadError(f"invalid data url {describe(s)}: {exc}") from exc

        if s.startswith(("http://", "https://")):
            try:
                r = self.session.get(s, timeout=self.timeout)
                r.raise_for_status()
            except requests.RequestException as exc:
                raise AssetLoadError(f"fetch failed for {describe(s)}: {exc}") from exc
            data = r.content or b""
            if not data:
                raise AssetLoadError(f"empty response from {describe(s)}")
            return data

        if self._is_file(s):
            return self._read_file(Path(s))

        try:
            return base64.b64decode(s, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise AssetLoadError(f"unrecognized image source {describe(s)}") from exc

    def decode(self, data: bytes, label: str = "image") -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise AssetLoadError(f"cannot decode {label}: {exc}") from exc
        if img.size[0] <= 0 or img.size[1] <= 0:
            raise AssetLoadError(f"{label} has no pixels")
        return img.convert("RGBA")

    def load(self, source: Source) -> Image.Image:
        return self.decode(self.load_bytes(source), label=describe(source))

    @staticmethod
    def _is_file(s: str) -> bool:
        # long base64 payloads are not paths (and raise ENAMETOOLONG on stat)
        if len(s) >= 4096:
            return False
        try:
            return Path(s).is_file()
        except (OSError, ValueError):
            return False

    @staticmethod
    def _read_file(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise AssetLoadError(f"cannot read {path}: {exc}") from exc
