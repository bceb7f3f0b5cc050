import base64
import binascii
import io
import os

import httpx
from PIL import Image, UnidentifiedImageError

from app.core.errors import MatteExtractionError


def _b64_to_image(b64: str) -> Image.Image:
    if "," in b64:
        b64 = b64.split(",", 1)[1]
    data = base64.b64decode(b64)
    return Image.open(io.BytesIO(data))


def has_useful_alpha(img: Image.Image) -> bool:
    """True when the image already carries a cutout (some alpha, not all transparent)."""
    if img.mode not in {"RGBA", "LA", "PA"} and not (img.mode == "P" and "transparency" in img.info):
        return False
    alpha = img.convert("RGBA").split()[-1]
    return alpha.getextrema() not in {(255, 255), (0, 0)}


class MattingClient:
    def __init__(self, base_url: str | None = None, timeout: float = 180, transport: httpx.BaseTransport | None = None):
        # MATTING_BASE_URL is the documented name; MATTING_URL is kept for older deployments.
        env_base = (os.getenv("MATTING_BASE_URL") or "").strip()
        env_legacy = (os.getenv("MATTING_URL") or "").strip()
        self.base_url = base_url or env_base or env_legacy or "http://127.0.0.1:8911"
        self.timeout = timeout
        self.transport = transport

    def extract_matte(self, image_bytes: bytes, filename: str = "image.png") -> Image.Image:
        """Return the product cutout (RGBA, alpha=0 outside the subject).

        Inputs that already have a usable alpha channel are passed through without a call.
        """
        try:
            src = Image.open(io.BytesIO(image_bytes))
            src.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise MatteExtractionError(f"invalid source image: {exc}") from exc
        if has_useful_alpha(src):
            return src.convert("RGBA")

        url = self.base_url.rstrip("/") + "/matting"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(url, files={"image": (filename, image_bytes, "application/octet-stream")})
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise MatteExtractionError(f"matting service error: {exc}") from exc

        b64 = payload.get("rgba_png_b64") if isinstance(payload, dict) else None
        if not isinstance(b64, str) or not b64:
            raise MatteExtractionError("matting response missing rgba_png_b64")
        try:
            rgba = _b64_to_image(b64).convert("RGBA")
        except (binascii.Error, UnidentifiedImageError, OSError, ValueError) as exc:
            raise MatteExtractionError(f"undecodable matte: {exc}") from exc

        if rgba.split()[-1].getextrema() == (0, 0):
            raise MatteExtractionError("empty alpha mask")
        return rgba
