import dataclasses
import unittest

from peakbook_qr.config import (
    CAPACITY_LIMITS,
    DEFAULT_CONFIG,
    StickerGeometry,
    build_url,
    check_qr_capacity,
    get_ecc_description,
    get_filename,
    get_preview_size,
    mm_to_px,
    px_to_mm,
)


class TestGeometry(unittest.TestCase):

    def test_default_sticker_pixels(self):
        sticker = DEFAULT_CONFIG.sticker
        self.assertEqual(sticker.size_px, 189)
        self.assertEqual(sticker.bleed_px, 11)
        self.assertEqual(sticker.total_size_px, 211)
        self.assertEqual(DEFAULT_CONFIG.qr.size_px, 151)

    def test_canvas_includes_bleed_on_both_sides(self):
        sticker = StickerGeometry(size_cm=8, bleed_cm=0.5)
        self.assertEqual(sticker.total_size_px, sticker.size_px + 2 * sticker.bleed_px)
        self.assertGreater(sticker.total_size_px, sticker.size_px)

    def test_mm_px_conversion(self):
        self.assertAlmostEqual(mm_to_px(25.4), 96)
        self.assertAlmostEqual(px_to_mm(96), 25.4)
        self.assertAlmostEqual(px_to_mm(mm_to_px(50)), 50)

    def test_domain_derived_from_base_url(self):
        self.assertEqual(DEFAULT_CONFIG.domain, "peakbook.app")
        self.assertEqual(DEFAULT_CONFIG.scan_path, "/scan")
        other = dataclasses.replace(DEFAULT_CONFIG, base_url="https://example.org/scan")
        self.assertEqual(other.domain, "example.org")


class TestUrlAndFilename(unittest.TestCase):

    def test_build_url_default_param(self):
        self.assertEqual(
            build_url("ABCDEFGHIJ0123456789"),
            "https://peakbook.app/scan?token=ABCDEFGHIJ0123456789",
        )

    def test_build_url_custom_param(self):
        self.assertEqual(build_url("ABC", "t"), "https://peakbook.app/scan?t=ABC")

    def test_filename_template(self):
        self.assertEqual(get_filename("ABCDEFGHIJ0123456789"), "peakbook-qr-ABCDEFGHIJ0123456789.svg")


class TestCapacity(unittest.TestCase):

    def test_limits_decrease_with_correction_strength(self):
        limits = [check_qr_capacity("x", level).limit for level in ("L", "M", "Q", "H")]
        self.assertEqual(limits, sorted(limits, reverse=True))
        self.assertEqual(len(set(limits)), 4)

    def test_h_smaller_than_l_for_any_data(self):
        for data in ("", "a", "https://peakbook.app/scan?token=X", "z" * 3000):
            self.assertLess(check_qr_capacity(data, "H").limit, check_qr_capacity(data, "L").limit)

    def test_within_and_over_limit(self):
        self.assertTrue(check_qr_capacity("a" * 1273, "H").within_limit)
        report = check_qr_capacity("a" * 1274, "H")
        self.assertFalse(report.within_limit)
        self.assertEqual(report.data_length, 1274)
        self.assertEqual(report.limit, 1273)

    def test_near_limit_at_eighty_percent(self):
        limit = CAPACITY_LIMITS["Q"]
        self.assertFalse(check_qr_capacity("a" * (limit // 2), "Q").near_limit)
        self.assertTrue(check_qr_capacity("a" * (limit * 8 // 10 + 1), "Q").near_limit)

    def test_percent_used(self):
        self.assertEqual(check_qr_capacity("a" * 1273, "H").percent_used, 100)
        self.assertEqual(check_qr_capacity("", "H").percent_used, 0)

    def test_counts_utf8_bytes(self):
        self.assertEqual(check_qr_capacity("ä").data_length, 2)

    def test_unknown_level_uses_h(self):
        self.assertEqual(check_qr_capacity("a", "X").limit, CAPACITY_LIMITS["H"])


class TestHelpers(unittest.TestCase):

    def test_ecc_description(self):
        self.assertEqual(get_ecc_description("Q"), "Quartile (25% recovery)")
        self.assertEqual(get_ecc_description("?"), "High (30% recovery)")

    def test_preview_size_clamped(self):
        self.assertEqual(get_preview_size(1000), 280)
        self.assertEqual(get_preview_size(100), 200)
        self.assertEqual(get_preview_size(282), 250)


if __name__ == "__main__":
    unittest.main()
