import tempfile
import threading
import time
import unittest

import requests
from PIL import ImageFont

from app.services import fonts
from app.services.fonts import FALLBACK_FAMILY, FONT_REGISTRY, FontProvider


def _real_font_bytes() -> bytes | None:
    # Pillow >= 10.1 ships an embedded TrueType default font when FreeType is available.
    font = ImageFont.load_default(size=16)
    return getattr(font, "font_bytes", None)


class TestFontProvider(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        with fonts._lock:
            fonts._registered.clear()

    def tearDown(self):
        with fonts._lock:
            fonts._registered.clear()
        self._tmp.cleanup()

    def test_registry_has_all_styles(self):
        self.assertEqual(
            set(FONT_REGISTRY),
            {"modern", "elegant", "calligraphy", "playful", "brush", "serif",
             "display", "handwriting", "tech", "classic", "street", "cursive"},
        )

    def test_unknown_style_falls_back(self):
        provider = FontProvider(self._tmp.name, fetch=lambda url: self.fail("no download expected"))
        self.assertEqual(provider.ensure("gothic-blackletter"), FALLBACK_FAMILY)

    def test_timeout_falls_back_quickly(self):
        release = threading.Event()

        def slow_fetch(url: str) -> bytes:
            release.wait(5)
            raise requests.ConnectionError("gave up")

        provider = FontProvider(self._tmp.name, timeout_s=0.05, fetch=slow_fetch)
        started = time.monotonic()
        try:
            family = provider.ensure("street")
        finally:
            release.set()
        self.assertEqual(family, FALLBACK_FAMILY)
        self.assertLess(time.monotonic() - started, 2.0)
        self.assertIsNone(fonts.registered_path("Permanent Marker"))

    def test_network_failure_falls_back(self):
        def broken(url: str) -> bytes:
            raise requests.ConnectionError("offline")

        provider = FontProvider(self._tmp.name, fetch=broken)
        self.assertEqual(provider.ensure("tech"), FALLBACK_FAMILY)

    def test_unexpected_fetch_error_falls_back(self):
        def broken(url: str) -> bytes:
            raise RuntimeError("font client crashed")

        provider = FontProvider(self._tmp.name, fetch=broken)
        self.assertEqual(provider.ensure("tech"), FALLBACK_FAMILY)
        self.assertIsNone(fonts.registered_path("Montserrat"))

    def test_overlapping_first_downloads_both_register(self):
        data = _real_font_bytes()
        if not data:
            self.skipTest("Pillow built without FreeType default font")

        both_fetching = threading.Barrier(2, timeout=5)

        def fetch(url: str) -> bytes:
            both_fetching.wait()
            return data

        provider = FontProvider(self._tmp.name, timeout_s=5.0, fetch=fetch)
        results = []
        workers = [threading.Thread(target=lambda: results.append(provider.ensure("cursive"))) for _ in range(2)]
        for t in workers:
            t.start()
        for t in workers:
            t.join(10)

        self.assertEqual(results, ["Sacramento", "Sacramento"])
        self.assertEqual(list(provider.font_dir.glob("*.part")), [])
        self.assertTrue((provider.font_dir / FONT_REGISTRY["cursive"].filename).exists())

    def test_invalid_font_file_falls_back(self):
        provider = FontProvider(self._tmp.name, fetch=lambda url: b"<html>not a font</html>")
        self.assertEqual(provider.ensure("classic"), FALLBACK_FAMILY)

    def test_registers_once(self):
        data = _real_font_bytes()
        if not data:
            self.skipTest("Pillow built without FreeType default font")

        calls = []

        def fetch(url: str) -> bytes:
            calls.append(url)
            return data

        provider = FontProvider(self._tmp.name, base_url="https://fonts.example/raw", fetch=fetch)
        self.assertEqual(provider.ensure("cursive"), "Sacramento")
        self.assertEqual(provider.ensure("cursive"), "Sacramento")
        self.assertEqual(calls, ["https://fonts.example/raw/ofl/sacramento/Sacramento-Regular.ttf"])
        self.assertIsNotNone(fonts.registered_path("Sacramento"))

        font = provider.font("Sacramento", 40.7)
        self.assertIsInstance(font, ImageFont.FreeTypeFont)
        self.assertEqual(font.size, 40)

    def test_cached_file_skips_download(self):
        data = _real_font_bytes()
        if not data:
            self.skipTest("Pillow built without FreeType default font")
        target = FontProvider(self._tmp.name).font_dir / FONT_REGISTRY["playful"].filename
        target.write_bytes(data)

        provider = FontProvider(self._tmp.name, fetch=lambda url: self.fail("no download expected"))
        self.assertEqual(provider.ensure("playful"), "ZCOOL KuaiLe")

    def test_font_for_unregistered_family_uses_fallback(self):
        provider = FontProvider(self._tmp.name)
        font = provider.font(FALLBACK_FAMILY, 24)
        self.assertIsNotNone(font)
        self.assertIs(provider.font(FALLBACK_FAMILY, 24), font)


if __name__ == "__main__":
    unittest.main()
