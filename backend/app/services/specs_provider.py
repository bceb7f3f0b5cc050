import os
import json
import base64
import io
import logging

from openai import OpenAI, OpenAIError
from PIL import Image, UnidentifiedImageError

from app.domain.models import PhysicalSpecs

logger = logging.getLogger("stage-composite")

_PROMPT = """
Analyze this product photo for compositing the product onto a generated stage.
Output JSON with:
{
    "physicalSpecs": {
        "lightingDirection": "e.g. soft light from top-left",
        "cameraPerspective": "e.g. eye-level straight on | high angle | top-down",
        "colorTemperature": "e.g. natural daylight"
    }
}
"""


class SpecsProvider:
    """Physical-specs analysis over an OpenAI-compatible chat API.

    Missing configuration or a failed call yields neutral defaults, never an error.
    """

    def __init__(self, client: OpenAI | None = None):
        self.api_key = os.getenv("BRAIN_API_KEY")
        self.base_url = os.getenv("BRAIN_BASE_URL")
        self.model = os.getenv("BRAIN_MODEL") or "gemini-3-pro"

        self.client = client
        if self.client is None:
            if not self.api_key or not self.base_url:
                logger.warning(
                    "BRAIN client not configured (need BRAIN_API_KEY + BRAIN_BASE_URL). "
                    "Physical specs will use neutral defaults."
                )
            else:
                self.client = OpenAI(api_key=self.api_key, base_url=self.base_url)

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _encode_image(self, image_bytes: bytes) -> str:
        img = Image.open(io.BytesIO(image_bytes)).convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format="JPEG")
        return base64.b64encode(buf.getvalue()).decode("utf-8")

    def analyze(self, image_bytes: bytes) -> PhysicalSpecs:
        if self.client is None:
            return PhysicalSpecs()
        try:
            img_b64 = self._encode_image(image_bytes)
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": _PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:image/jpeg;base64,{img_b64}"},
                            },
                        ],
                    }
                ],
                response_format={"type": "json_object"},
            )
            data = json.loads(response.choices[0].message.content or "{}")
        except (OpenAIError, UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"Physical specs analysis failed, using defaults: {e}")
            return PhysicalSpecs()

        if not isinstance(data, dict):
            return PhysicalSpecs()
        specs = data.get("physicalSpecs") or data.get("physical_specs") or data
        return PhysicalSpecs.from_mapping(specs if isinstance(specs, dict) else {})
