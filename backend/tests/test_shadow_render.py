import unittest

from PIL import Image, ImageDraw

from app.domain.models import PlacementBox, ShadowParams
from app.services.shadow import ShadowService


class TestSilhouette(unittest.TestCase):
    def test_alpha_becomes_solid_mask(self):
        cutout = Image.new("RGBA", (10, 10), (255, 255, 255, 0))
        ImageDraw.Draw(cutout).rectangle([2, 2, 7, 7], fill=(30, 200, 90, 255))

        sil = ShadowService().silhouette(cutout)
        self.assertEqual(sil.mode, "L")
        self.assertEqual(sil.getpixel((0, 0)), 0)
        self.assertEqual(sil.getpixel((5, 5)), 255)

    def test_resized_to_placement(self):
        cutout = Image.new("RGBA", (10, 20), (0, 0, 0, 255))
        self.assertEqual(ShadowService().silhouette(cutout, (30, 60)).size, (30, 60))


class TestCastShadow(unittest.TestCase):
    def setUp(self):
        self.svc = ShadowService()
        self.sil = Image.new("L", (100, 200), 255)
        self.box = PlacementBox(x=150, y=100, w=100, h=200)

    def test_no_skew_flattens_onto_floor_line(self):
        params = ShadowParams(skew_x=0.0, scale_y=0.5, offset_x=0, offset_y=0)
        mask = self.svc.render_cast_shadow(self.sil, self.box, params, (400, 400), blur_radius=0, opacity=1.0)

        self.assertEqual(mask.size, (400, 400))
        x0, y0, x1, y1 = mask.getbbox()
        self.assertLessEqual(abs(x0 - 150), 2)
        self.assertLessEqual(abs(x1 - 250), 2)
        # bottom edge stays at box.bottom, height scaled by 0.5
        self.assertLessEqual(abs(y1 - 300), 2)
        self.assertLessEqual(abs(y0 - 200), 2)

    def test_positive_skew_leans_top_left(self):
        params = ShadowParams(skew_x=0.6, scale_y=0.5, offset_x=0, offset_y=0)
        mask = self.svc.render_cast_shadow(self.sil, self.box, params, (400, 400), blur_radius=0, opacity=1.0)

        # near the top of the projected shadow the silhouette is shifted left
        self.assertGreater(mask.getpixel((80, 205)), 0)
        self.assertEqual(mask.getpixel((200, 205)), 0)
        # near the floor line it sits under the product
        self.assertGreater(mask.getpixel((200, 298)), 0)

    def test_offsets_translate(self):
        params = ShadowParams(skew_x=0.0, scale_y=0.5, offset_x=20, offset_y=-10)
        mask = self.svc.render_cast_shadow(self.sil, self.box, params, (400, 400), blur_radius=0, opacity=1.0)
        x0, _, _, y1 = mask.getbbox()
        self.assertLessEqual(abs(x0 - 170), 2)
        self.assertLessEqual(abs(y1 - 290), 2)

    def test_opacity_caps_darkness(self):
        params = ShadowParams(skew_x=0.0, scale_y=0.5, offset_x=0, offset_y=0)
        mask = self.svc.render_cast_shadow(self.sil, self.box, params, (400, 400), blur_radius=0, opacity=0.2)
        self.assertEqual(mask.getextrema()[1], 51)

    def test_blur_softens_edges(self):
        params = ShadowParams(skew_x=0.0, scale_y=0.5, offset_x=0, offset_y=0)
        sharp = self.svc.render_cast_shadow(self.sil, self.box, params, (400, 400), blur_radius=0, opacity=1.0)
        soft = self.svc.render_cast_shadow(self.sil, self.box, params, (400, 400), blur_radius=35, opacity=1.0)
        self.assertEqual(sharp.getpixel((120, 250)), 0)
        self.assertGreater(soft.getpixel((120, 250)), 0)


class TestContactShadow(unittest.TestCase):
    def test_ellipse_at_base(self):
        box = PlacementBox(x=100, y=50, w=200, h=300)
        mask = ShadowService().render_contact_shadow(box, (400, 400), blur_radius=10, opacity=0.5)

        self.assertEqual(mask.size, (400, 400))
        center = mask.getpixel((200, 350))
        self.assertGreater(center, 0)
        self.assertLessEqual(center, 128)
        # well outside the 80 px wide ellipse
        self.assertEqual(mask.getpixel((20, 350)), 0)
        self.assertEqual(mask.getpixel((200, 200)), 0)

    def test_unblurred_width(self):
        box = PlacementBox(x=100, y=50, w=200, h=300)
        mask = ShadowService().render_contact_shadow(box, (400, 400), blur_radius=0, opacity=1.0)
        x0, y0, x1, y1 = mask.getbbox()
        self.assertLessEqual(abs((x1 - x0) - 80), 2)
        self.assertLessEqual(abs((y1 - y0) - 15), 2)


if __name__ == "__main__":
    unittest.main()
