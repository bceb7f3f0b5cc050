import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from app.core.errors import AssetLoadError, CompositingError, MatteExtractionError, PipelineError
from app.domain.models import GenerationMode, PhysicalSpecs, TextStyle
from app.services.fonts import FONT_REGISTRY
from app.services.pipeline import CompositePipeline
from app.services.specs_provider import SpecsProvider

router = APIRouter()
logger = logging.getLogger("stage-composite")

pipeline = CompositePipeline()
specs_provider = SpecsProvider()

_STATUS = {
    AssetLoadError: 400,
    MatteExtractionError: 502,
    CompositingError: 500,
}


async def _source(upload: Optional[UploadFile], url: Optional[str]):
    if upload is not None:
        data = await upload.read()
        if data:
            return data
    if url and url.strip():
        return url.strip()
    return None


@router.post("/synthesize")
async def synthesize_image(
    background_image: Optional[UploadFile] = File(None),
    background_url: Optional[str] = Form(None),
    original_image: Optional[UploadFile] = File(None),
    original_url: Optional[str] = Form(None),
    title: str = Form(""),
    detail: str = Form(""),
    font_style: str = Form("modern"),
    main_color: str = Form("#FFFFFF"),
    sub_color: str = Form("rgba(255,255,255,0.7)"),
    font_size: float = Form(8.0),
    shadow_intensity: float = Form(20.0),
    position_y: float = Form(82.0),
    detail_chip: bool = Form(False),
    lighting_direction: Optional[str] = Form(None),
    camera_perspective: Optional[str] = Form(None),
    mode: str = Form("precision"),
):
    try:
        gen_mode = GenerationMode.parse(mode)
        style = TextStyle(
            title=title,
            detail=detail,
            font_style=font_style,
            main_color=main_color,
            sub_color=sub_color,
            font_size=font_size,
            shadow_intensity=shadow_intensity,
            position_y=position_y,
            detail_chip=detail_chip,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    background = await _source(background_image, background_url)
    if background is None:
        raise HTTPException(status_code=422, detail="background_image or background_url required")
    original = await _source(original_image, original_url)
    if gen_mode is GenerationMode.PRECISION and original is None:
        raise HTTPException(status_code=422, detail="original_image or original_url required in precision mode")

    if gen_mode is GenerationMode.PRECISION and not lighting_direction and not camera_perspective and specs_provider.configured:
        try:
            original_bytes = await asyncio.to_thread(pipeline.assets.load_bytes, original)
        except AssetLoadError as exc:
            raise HTTPException(status_code=400, detail=exc.user_message) from exc
        specs = await asyncio.to_thread(specs_provider.analyze, original_bytes)
    else:
        specs = PhysicalSpecs.from_mapping(
            {"lighting_direction": lighting_direction, "camera_perspective": camera_perspective}
        )

    try:
        result = await asyncio.to_thread(pipeline.run, background, original, style, specs, gen_mode)
    except PipelineError as exc:
        status = next((code for kind, code in _STATUS.items() if isinstance(exc, kind)), 500)
        logger.warning("synthesize failed status=%s: %s", status, exc)
        raise HTTPException(status_code=status, detail=exc.user_message) from exc

    return Response(
        content=result.image_bytes,
        media_type="image/jpeg",
        headers={
            "X-Trace-Id": result.trace_id,
            "X-Font-Family": result.font_family,
        },
    )


@router.get("/fonts")
async def list_fonts():
    return {
        "fonts": [
            {"id": font_id, "family": spec.family, "weight": spec.weight}
            for font_id, spec in FONT_REGISTRY.items()
        ]
    }
