import unittest

from app.domain.models import PlacementBox
from app.services.placement import fit


class TestFit(unittest.TestCase):
    def test_portrait_product_on_square_canvas(self):
        box = fit(1024, 1024, 768, 1024, padding_scale=0.65, vertical_bias=0.65)
        self.assertAlmostEqual(box.h, 665.6, places=6)
        self.assertAlmostEqual(box.w, 499.2, places=6)
        self.assertAlmostEqual(box.x, (1024 - 499.2) / 2, places=6)
        self.assertAlmostEqual(box.y, (1024 - 665.6) * 0.65, places=6)

    def test_wide_product_is_width_constrained(self):
        box = fit(1024, 1024, 2000, 1000, padding_scale=0.65)
        self.assertAlmostEqual(box.w, 665.6, places=6)
        self.assertAlmostEqual(box.h, 332.8, places=6)

    def test_contained_and_aspect_preserved(self):
        canvases = [(1024, 1024), (768, 1024), (1920, 1080), (1080, 1920), (300, 50)]
        products = [(1, 1), (3, 4), (4, 3), (1000, 10), (10, 1000), (512, 513)]
        for cw, ch in canvases:
            for fw, fh in products:
                for pad in (0.1, 0.65, 1.0):
                    for bias in (0.0, 0.65, 1.0):
                        box = fit(cw, ch, fw, fh, pad, bias)
                        self.assertGreaterEqual(box.x, -1e-9)
                        self.assertGreaterEqual(box.y, -1e-9)
                        self.assertLessEqual(box.x + box.w, cw + 1e-9)
                        self.assertLessEqual(box.y + box.h, ch + 1e-9)
                        self.assertAlmostEqual(box.w / box.h, fw / fh, places=9)

    def test_vertical_bias_bounds(self):
        top = fit(1000, 1000, 1, 1, 0.5, 0.0)
        bottom = fit(1000, 1000, 1, 1, 0.5, 1.0)
        self.assertEqual(top.y, 0.0)
        self.assertAlmostEqual(bottom.bottom, 1000.0)

    def test_invalid_inputs(self):
        with self.assertRaises(ValueError):
            fit(0, 100, 10, 10)
        with self.assertRaises(ValueError):
            fit(100, 100, 10, 0)
        with self.assertRaises(ValueError):
            fit(100, 100, 10, 10, padding_scale=1.2)
        with self.assertRaises(ValueError):
            fit(100, 100, 10, 10, padding_scale=0)
        with self.assertRaises(ValueError):
            fit(100, 100, 10, 10, vertical_bias=-0.1)


class TestPlacementBox(unittest.TestCase):
    def test_derived_properties(self):
        box = PlacementBox(x=10, y=20, w=40, h=80)
        self.assertEqual(box.bottom, 100)
        self.assertEqual(box.center_x, 30)
        self.assertEqual(box.aspect, 0.5)

    def test_to_pixels_rounds_and_clamps(self):
        box = PlacementBox(x=262.4, y=232.96, w=499.2, h=665.6)
        self.assertEqual(box.to_pixels(), (262, 233, 499, 666))
        self.assertEqual(PlacementBox(x=95.6, y=-0.4, w=10.2, h=10.0).to_pixels((100, 100)), (90, 0, 10, 10))


if __name__ == "__main__":
    unittest.main()
