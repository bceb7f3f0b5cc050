import unittest

from PIL import Image, ImageDraw

from app.core.errors import CompositingError
from app.domain.models import GenerationMode, PlacementBox
from app.services.compositor import Compositor


class TestApplyShadow(unittest.TestCase):
    def test_multiply_by_inverted_mask(self):
        buf = Image.new("RGBA", (10, 10), (255, 255, 255, 255))
        mask = Image.new("L", (10, 10), 0)
        ImageDraw.Draw(mask).rectangle([0, 0, 4, 9], fill=255)

        out = Compositor.apply_shadow(buf, mask)
        self.assertEqual(out.getpixel((0, 0)), (0, 0, 0, 255))
        self.assertEqual(out.getpixel((9, 9)), (255, 255, 255, 255))

    def test_partial_shadow(self):
        buf = Image.new("RGBA", (4, 4), (200, 100, 50, 255))
        mask = Image.new("L", (4, 4), 51)  # 0.2 opacity black
        r, g, b, a = Compositor.apply_shadow(buf, mask).getpixel((1, 1))
        self.assertAlmostEqual(r, 160, delta=1)
        self.assertAlmostEqual(g, 80, delta=1)
        self.assertAlmostEqual(b, 40, delta=1)
        self.assertEqual(a, 255)

    def test_size_mismatch(self):
        with self.assertRaises(CompositingError):
            Compositor.apply_shadow(Image.new("RGBA", (10, 10)), Image.new("L", (5, 5)))


class TestCompose(unittest.TestCase):
    def setUp(self):
        self.bg = Image.new("RGB", (100, 100), (0, 0, 255))
        self.cutout = Image.new("RGBA", (20, 20), (200, 50, 50, 255))
        self.box = PlacementBox(x=40, y=40, w=20, h=20)

    def test_creative_only_copies_background(self):
        out = Compositor().compose(self.bg, [Image.new("L", (100, 100), 255)], self.cutout, self.box, GenerationMode.CREATIVE)
        self.assertEqual(out.mode, "RGBA")
        self.assertEqual(out.size, self.bg.size)
        self.assertEqual(out.tobytes(), self.bg.convert("RGBA").tobytes())

    def test_background_is_filled_to_canvas(self):
        out = Compositor().compose(self.bg, [], None, None, GenerationMode.CREATIVE, canvas_size=(50, 80))
        self.assertEqual(out.size, (50, 80))

    def test_foreground_drawn_at_box(self):
        out = Compositor().compose(self.bg, [], self.cutout, self.box, GenerationMode.PRECISION, bleed_opacity=0)
        self.assertEqual(out.getpixel((50, 50)), (200, 50, 50, 255))
        self.assertEqual(out.getpixel((10, 10)), (0, 0, 255, 255))

    def test_shadows_below_foreground(self):
        shadow = Image.new("L", (100, 100), 255)
        out = Compositor().compose(self.bg, [shadow], self.cutout, self.box, GenerationMode.PRECISION, bleed_opacity=0)
        # shadow darkens the stage but never the subject drawn over it
        self.assertEqual(out.getpixel((10, 10)), (0, 0, 0, 255))
        self.assertEqual(out.getpixel((50, 50)), (200, 50, 50, 255))

    def test_color_bleed_tints_subject_only(self):
        out = Compositor().compose(self.bg, [], self.cutout, self.box, GenerationMode.PRECISION, bleed_opacity=0.08)
        r, g, b, _ = out.getpixel((50, 50))
        self.assertLess(r, 200)
        self.assertGreater(r, 185)
        self.assertGreater(b, 50)
        self.assertEqual(out.getpixel((10, 10)), (0, 0, 255, 255))

    def test_transparent_cutout_pixels_keep_stage(self):
        cutout = Image.new("RGBA", (20, 20), (0, 0, 0, 0))
        ImageDraw.Draw(cutout).rectangle([5, 5, 14, 14], fill=(255, 255, 255, 255))
        out = Compositor().compose(self.bg, [], cutout, self.box, GenerationMode.PRECISION, bleed_opacity=0.08)
        self.assertEqual(out.getpixel((41, 41)), (0, 0, 255, 255))

    def test_precision_requires_cutout(self):
        with self.assertRaises(CompositingError):
            Compositor().compose(self.bg, [], None, self.box, GenerationMode.PRECISION)


if __name__ == "__main__":
    unittest.main()
