from contextlib import asynccontextmanager
from pathlib import Path
import os

from dotenv import load_dotenv
from fastapi import FastAPI

# Load backend/.env as early as possible so module-level singletons that read env
# (MattingClient, SpecsProvider, CompositeSettings) see the correct config.
_backend_dir = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_backend_dir / ".env", override=False)

from app.core.logger import setup_logger

from app.api import synthesize

logger = setup_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = synthesize.pipeline.settings
    matting_url = synthesize.pipeline.matting.base_url

    logger.info("Starting Stage Composite Backend...")
    logger.info(
        f"matting={matting_url} font_dir={settings.resolved_font_dir} "
        f"padding_scale={settings.padding_scale} vertical_bias={settings.vertical_bias}"
    )
    if not synthesize.specs_provider.configured:
        logger.warning("Physical specs provider not configured; requests without descriptors use defaults")

    yield

    logger.info("Shutting down...")

app = FastAPI(
    title="Stage Composite",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(synthesize.router, prefix="/api/v1")

@app.get("/health")
async def health_check():
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")), reload=True)
