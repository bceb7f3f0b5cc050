from pathlib import Path

from PIL import Image, ImageDraw


REPO_ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = REPO_ROOT / "scripts" / "fixtures"

def create_test_assets():
    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)

    # 1. Product cutout: a bottle on transparent, with margins the pipeline trims
    product = Image.new('RGBA', (600, 800), (0, 0, 0, 0))
    draw = ImageDraw.Draw(product)
    draw.rounded_rectangle((200, 250, 400, 720), radius=40, fill=(196, 48, 64, 255))
    draw.rectangle((265, 140, 335, 250), fill=(40, 40, 40, 255))
    out_prod = FIXTURES_DIR / "test_product.png"
    product.save(out_prod)
    print(f"Created {out_prod}")

    # 2. Stage plate: wall + floor, no product in it
    background = Image.new('RGB', (1024, 1024), (226, 218, 204))
    draw = ImageDraw.Draw(background)
    draw.rectangle((0, 700, 1024, 1024), fill=(176, 160, 140))
    out_bg = FIXTURES_DIR / "test_background.png"
    background.save(out_bg)
    print(f"Created {out_bg}")

if __name__ == "__main__":
    create_test_assets()
