import os
import sys
from pathlib import Path

# Add backend to path
sys.path.append(os.path.join(os.path.dirname(__file__), '../backend'))

from app.domain.models import PhysicalSpecs, TextStyle
from app.services.pipeline import CompositePipeline

REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = REPO_ROOT / "scripts" / "fixtures"
ARTIFACTS_DIR = REPO_ROOT / "artifacts" / "poc_output"

def run_pipeline():
    print("Running composite pipeline...")

    background = FIXTURES_DIR / 'test_background.png'
    product = FIXTURES_DIR / 'test_product.png'
    if not background.exists() or not product.exists():
        print("Error: Test assets not found. Run scripts/create_test_assets.py first.")
        return

    # The fixture product already carries alpha, so the matting service is never called.
    pipeline = CompositePipeline()
    style = TextStyle(title="NEW ARRIVAL", detail="limited edition", font_style="modern", detail_chip=True)

    ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
    for mode in ("precision", "creative"):
        result = pipeline.run(
            background,
            product,
            style,
            PhysicalSpecs(lighting_direction="warm light from the left", camera_perspective="high angle"),
            mode,
        )
        out = ARTIFACTS_DIR / f'composite_{mode}.jpg'
        out.write_bytes(result.image_bytes)
        print(f"[{mode}] states={' -> '.join(result.states)} font={result.font_family}")
        if result.placement is not None:
            print(f"[{mode}] placement={result.placement} shadow={result.shadow_params}")
        print(f"Success! Output saved to {out}")

if __name__ == "__main__":
    run_pipeline()
