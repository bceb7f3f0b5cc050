from __future__ import annotations

import io
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Mapping, Optional, Union

from PIL import Image

from app.core.errors import CompositingError, PipelineError
from app.core.logger import TaskLogger
from app.core.settings import CompositeSettings
from app.domain.models import (
    GenerationMode,
    PhysicalSpecs,
    SynthesisResult,
    TextStyle,
    alpha_of,
)
from app.domain.pipeline_state import PipelineRun, PipelineState
from app.services.asset_loader import AssetLoader, Source
from app.services.compositor import Compositor
from app.services.fonts import FontProvider
from app.services.matting_client import MattingClient
from app.services.placement import fit
from app.services.shadow import ShadowService, derive_params
from app.services.text_renderer import TextRenderer

SpecsInput = Union[PhysicalSpecs, Mapping[str, Any], None]


def encode_jpeg(img: Image.Image, quality: int = 95) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=int(quality), optimize=True)
    return buf.getvalue()


def trim_to_subject(cutout: Image.Image) -> Image.Image:
    """Crop transparent margins so placement and shadows follow the subject, not the photo frame."""
    bbox = alpha_of(cutout).getbbox()
    if bbox is None:
        raise CompositingError("foreground cutout is fully transparent")
    if bbox == (0, 0, *cutout.size):
        return cutout
    return cutout.crop(bbox)


class CompositePipeline:
    """background plate + product photo + text style -> one encoded JPEG.

    Each call owns its buffers and PipelineRun; instances can be shared between threads.
    """

    def __init__(
        self,
        settings: CompositeSettings | None = None,
        assets: AssetLoader | None = None,
        matting: MattingClient | None = None,
        fonts: FontProvider | None = None,
        shadow: ShadowService | None = None,
        compositor: Compositor | None = None,
        text: TextRenderer | None = None,
    ):
        self.settings = settings or CompositeSettings.from_env()
        s = self.settings
        self.assets = assets or AssetLoader(timeout=s.fetch_timeout_s)
        self.matting = matting or MattingClient()
        self.fonts = fonts or FontProvider(s.resolved_font_dir, base_url=s.font_base_url, timeout_s=s.font_timeout_s)
        self.shadow = shadow or ShadowService()
        self.compositor = compositor or Compositor()
        self.text = text or TextRenderer(self.fonts, s.detail_size_ratio, s.detail_line_gap)

    def synthesize(
        self,
        background_source: Source,
        original_source: Optional[Source],
        text_style: TextStyle,
        physical_specs: SpecsInput = None,
        mode: Union[GenerationMode, str] = GenerationMode.PRECISION,
    ) -> bytes:
        return self.run(background_source, original_source, text_style, physical_specs, mode).image_bytes

    def run(
        self,
        background_source: Source,
        original_source: Optional[Source],
        text_style: TextStyle,
        physical_specs: SpecsInput = None,
        mode: Union[GenerationMode, str] = GenerationMode.PRECISION,
        trace_id: str | None = None,
    ) -> SynthesisResult:
        mode = GenerationMode.parse(mode)
        specs = physical_specs if isinstance(physical_specs, PhysicalSpecs) else PhysicalSpecs.from_mapping(physical_specs)
        state = PipelineRun(mode=mode, **({"trace_id": trace_id} if trace_id else {}))
        log = TaskLogger(trace_id=state.trace_id)
        log.info("synthesis started", mode=mode.value, font_style=text_style.font_style)

        pool = ThreadPoolExecutor(max_workers=3, thread_name_prefix=f"synth-{state.trace_id[:8]}")
        try:
            return self._run(pool, state, log, background_source, original_source, text_style, specs)
        except PipelineError as exc:
            state.fail(str(exc))
            log.error("synthesis failed", error_kind=type(exc).__name__, error=str(exc), states=state.states)
            raise
        except Exception as exc:
            state.fail(str(exc))
            log.error("synthesis failed", exc_info=True, error_kind="CompositingError", states=state.states)
            raise CompositingError(f"{type(exc).__name__}: {exc}") from exc
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _advance(self, state: PipelineRun, log: TaskLogger, target: PipelineState) -> None:
        state.advance(target)
        log.info("pipeline state", state=target.value)

    def _extract_matte(self, original_source: Source) -> Image.Image:
        data = self.assets.load_bytes(original_source)
        return self.matting.extract_matte(data, filename="product.png")

    def _run(
        self,
        pool: ThreadPoolExecutor,
        state: PipelineRun,
        log: TaskLogger,
        background_source: Source,
        original_source: Optional[Source],
        text_style: TextStyle,
        specs: PhysicalSpecs,
    ) -> SynthesisResult:
        s = self.settings
        precision = state.mode is GenerationMode.PRECISION
        if precision and original_source is None:
            raise CompositingError("precision mode requires the original product image")

        self._advance(state, log, PipelineState.LOADING_ASSETS)
        bg_future = pool.submit(self.assets.load, background_source)
        font_future = pool.submit(self.fonts.ensure, text_style.font_style, log)
        matte_future: Optional[Future] = pool.submit(self._extract_matte, original_source) if precision else None

        background = bg_future.result()
        canvas_size = background.size
        log.info("background decoded", width=canvas_size[0], height=canvas_size[1])

        box = None
        params = None
        if matte_future is not None:
            self._advance(state, log, PipelineState.EXTRACTING_MATTE)
            cutout = trim_to_subject(matte_future.result())

            self._advance(state, log, PipelineState.SYNTHESIZING_SHADOW)
            box = fit(canvas_size[0], canvas_size[1], cutout.size[0], cutout.size[1], s.padding_scale, s.vertical_bias)
            params = derive_params(specs.lighting_direction, specs.camera_perspective)
            _, _, pw, ph = box.to_pixels(canvas_size)
            silhouette = self.shadow.silhouette(cutout, (pw, ph))
            cast = self.shadow.render_cast_shadow(
                silhouette, box, params, canvas_size, blur_radius=s.cast_blur_radius, opacity=s.cast_opacity
            )
            contact = self.shadow.render_contact_shadow(
                box,
                canvas_size,
                width_ratio=s.contact_width_ratio,
                height=s.contact_height,
                blur_radius=s.contact_blur_radius,
                opacity=s.contact_opacity,
            )
            log.info(
                "shadow synthesized",
                skew_x=params.skew_x,
                scale_y=params.scale_y,
                box=[round(box.x, 1), round(box.y, 1), round(box.w, 1), round(box.h, 1)],
            )

            self._advance(state, log, PipelineState.COMPOSITING)
            buffer = self.compositor.compose(
                background, [cast, contact], cutout, box, state.mode, bleed_opacity=s.bleed_opacity
            )
        else:
            self._advance(state, log, PipelineState.COMPOSITING)
            buffer = self.compositor.compose(background, [], None, None, state.mode)

        family = font_future.result()
        self._advance(state, log, PipelineState.RENDERING_TEXT)
        self.text.render(buffer, text_style, family)

        data = encode_jpeg(buffer, s.jpeg_quality)
        self._advance(state, log, PipelineState.ENCODED)
        log.info("synthesis finished", bytes=len(data), font_family=family)

        return SynthesisResult(
            image_bytes=data,
            width=canvas_size[0],
            height=canvas_size[1],
            mode=state.mode,
            trace_id=state.trace_id,
            font_family=family,
            placement=box,
            shadow_params=params,
            states=state.states,
        )
