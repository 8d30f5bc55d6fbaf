import dataclasses
import io
import os
import tempfile
import unittest
import xml.etree.ElementTree as ET

from PIL import Image

from peakbook_qr.config import DEFAULT_CONFIG, LogoStyle, StickerColors
from peakbook_qr.document import SVG_NS
from peakbook_qr.export import svg_to_string
from peakbook_qr.image_utils import default_logo_path
from peakbook_qr.qr_generator import generate_from_token
from peakbook_qr.svg_builder import (
    StickerOptions,
    compute_layout,
    create_sticker_svg,
    module_size_for,
    wrap_caption,
)

VALID_TOKEN = "ABCDEFGHIJ0123456789"
INLINE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10">'
    '<circle cx="5" cy="5" r="4" fill="#ff0000"/></svg>'
)


class TestWrapCaption(unittest.TestCase):

    def test_short_caption_single_line(self):
        self.assertEqual(wrap_caption("Scan to check in!"), ["Scan to check in!"])
        self.assertEqual(wrap_caption(""), [])

    def test_greedy_wrap(self):
        self.assertEqual(
            wrap_caption("Scan this code to check in at the summit cross"),
            ["Scan this code to check", "in at the summit cross"],
        )

    def test_lines_fit_width(self):
        caption = "Welcome to the Zugspitze summit please scan"
        lines = wrap_caption(caption, 25)
        self.assertTrue(all(len(line) <= 25 for line in lines))
        self.assertEqual(" ".join(lines), caption)

    def test_long_word_gets_own_line(self):
        self.assertEqual(
            wrap_caption("Supercalifragilisticexpialidocious rocks"),
            ["Supercalifragilisticexpialidocious", "rocks"],
        )


class TestLayout(unittest.TestCase):

    def test_module_size(self):
        self.assertEqual(module_size_for(None), 5)
        self.assertEqual(module_size_for(37), 4)
        self.assertEqual(module_size_for(10_000), 1)

    def test_caption_reduces_qr_size(self):
        module_size = module_size_for(None)
        empty = compute_layout(DEFAULT_CONFIG, [], module_size)
        long = compute_layout(DEFAULT_CONFIG, wrap_caption("Scan this code to check in at the summit cross"),
                              module_size)
        self.assertGreater(empty.qr_size, long.qr_size)
        self.assertEqual(empty.caption_height, 0)

    def test_qr_within_frame(self):
        for lines in ([], ["one"], ["one", "two"]):
            layout = compute_layout(DEFAULT_CONFIG, lines, 5)
            self.assertLessEqual(layout.qr_size, DEFAULT_CONFIG.qr.size_px)
            self.assertGreaterEqual(layout.qr_x, layout.inner_x)
            self.assertLessEqual(layout.qr_x + layout.qr_size, layout.inner_x + layout.inner_width)
            self.assertGreaterEqual(layout.qr_y, layout.inner_y)
            self.assertLessEqual(layout.qr_y + layout.qr_size, layout.inner_y + layout.inner_height)

    def test_logo_centered_on_qr(self):
        layout = compute_layout(DEFAULT_CONFIG, [], 5)
        self.assertAlmostEqual(layout.logo_x + layout.logo_size / 2, layout.qr_x + layout.qr_size / 2)
        self.assertAlmostEqual(layout.logo_y + layout.logo_size / 2, layout.qr_y + layout.qr_size / 2)
        self.assertLess(layout.logo_coverage, DEFAULT_CONFIG.logo.max_size_percent)


class TestCreateStickerSvg(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.qr_result = generate_from_token(VALID_TOKEN)

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def compose(self, logo=None, caption="Scan to check in!", options=None, config=DEFAULT_CONFIG):
        return create_sticker_svg(self.qr_result, logo or default_logo_path(), caption, options, config)

    def test_document_structure(self):
        document = self.compose()
        root = document.root
        total = DEFAULT_CONFIG.sticker.total_size_px

        self.assertEqual(root.attrs["width"], total)
        self.assertEqual(root.attrs["viewBox"], f"0 0 {total} {total}")
        self.assertEqual(root.attrs["data-print-size"], "5cm")
        self.assertEqual(root.attrs["data-bleed"], "0.3cm")
        self.assertEqual([c.tag for c in root.children[:3]], ["title", "desc", "defs"])
        self.assertIsNotNone(root.find("logo-shadow"))
        self.assertIsNotNone(root.find("sticker-clip"))

        framed = root.find("framed-layout")
        self.assertEqual([c.attrs["id"] for c in framed.children],
                         ["border", "caption", "qr-code", "logo-overlay", "brand"])
        self.assertEqual(root.find("caption").text, "Scan to check in!")
        self.assertEqual(root.find("brand").text, "peakbook")
        self.assertEqual(document.ecc_level, "Q")
        self.assertEqual(document.degraded, [])

    def test_background_fills_canvas(self):
        background = self.compose().root.find("background")
        total = DEFAULT_CONFIG.sticker.total_size_px
        self.assertEqual((background.attrs["width"], background.attrs["height"]), (total, total))
        self.assertEqual(background.attrs["fill"], "#99bdc6")

    def test_border_stroke_matches_module_size(self):
        document = self.compose()
        border = document.root.find("border")
        self.assertEqual(border.attrs["stroke-width"], module_size_for(self.qr_result.module_count))
        self.assertEqual(border.attrs["stroke-width"], document.layout.module_size)

    def test_no_caption(self):
        document = self.compose(caption="")
        self.assertIsNone(document.root.find("caption"))
        self.assertEqual(document.layout.caption_lines, ())

    def test_multiline_caption_uses_tspans(self):
        document = self.compose(caption="Scan this code to check in at the summit cross")
        caption = document.root.find("caption")
        self.assertIsNone(caption.text)
        self.assertEqual([t.text for t in caption.children],
                         ["Scan this code to check", "in at the summit cross"])

    def test_qr_fragment_embedded(self):
        qr_group = self.compose().root.find("qr-code")
        nested = qr_group.children[0]
        self.assertEqual(nested.tag, "svg")
        self.assertEqual(nested.attrs["preserveAspectRatio"], "xMidYMid meet")
        self.assertNotIn("xmlns", nested.attrs)
        self.assertTrue(qr_group.attrs["transform"].startswith("translate("))

    def test_placeholder_for_bad_fragment(self):
        broken = dataclasses.replace(self.qr_result, svg_string="<not-svg")
        with self.assertLogs("peakbook_qr.svg_builder", level="WARNING"):
            document = create_sticker_svg(broken, default_logo_path(), "")

        self.assertIn("qr_placeholder", document.degraded)
        qr_group = document.root.find("qr-code")
        self.assertEqual(qr_group.children[0].attrs["fill"], "#000000")
        self.assertEqual(qr_group.children[1].text, "QR ERROR")

    def test_logo_fallback(self):
        missing = os.path.join(self.tmpdir.name, "missing.svg")
        with self.assertLogs("peakbook_qr.svg_builder", level="WARNING"):
            document = self.compose(logo=missing)

        self.assertEqual(document.degraded, ["logo_fallback"])
        overlay = document.root.find("logo-overlay")
        tags = [c.tag for c in overlay.children]
        self.assertEqual(tags, ["rect", "circle", "text"])
        self.assertEqual(overlay.children[1].attrs["fill"], "#2563eb")
        self.assertEqual(overlay.children[2].text, "P")

    def test_inline_svg_logo(self):
        document = self.compose(logo=INLINE_SVG)
        logo = document.root.find("logo-overlay").children[1]
        self.assertEqual(logo.tag, "svg")
        self.assertEqual(logo.attrs["width"], DEFAULT_CONFIG.logo.size_px)
        self.assertEqual(logo.attrs["viewBox"], "0 0 10 10")
        self.assertEqual(logo.attrs["x"], document.layout.logo_x)

    def test_raster_logo(self):
        path = os.path.join(self.tmpdir.name, "logo.png")
        out = io.BytesIO()
        Image.new("RGB", (64, 64), "green").save(out, "PNG")
        with open(path, "wb") as f:
            f.write(out.getvalue())

        image = self.compose(logo=path).root.find("logo-overlay").children[1]
        self.assertEqual(image.tag, "image")
        self.assertTrue(image.attrs["href"].startswith("data:image/png;base64,"))
        self.assertEqual(image.attrs["href"], image.attrs["xlink:href"])

    def test_trim_marks_only_when_requested(self):
        self.assertIsNone(self.compose().root.find("trim-marks"))

        document = self.compose(options=StickerOptions(include_trim_marks=True))
        marks = document.root.find("trim-marks")
        self.assertEqual(len(marks.children), 8)

        total = document.layout.total_size
        for line in marks.children:
            for name in ("x1", "y1", "x2", "y2"):
                self.assertGreaterEqual(line.attrs[name], 0)
                self.assertLessEqual(line.attrs[name], total)

    def test_trim_marks_from_config(self):
        config = dataclasses.replace(DEFAULT_CONFIG, include_trim_marks=True)
        self.assertIsNotNone(self.compose(config=config).root.find("trim-marks"))
        self.assertIsNone(
            self.compose(options=StickerOptions(include_trim_marks=False), config=config).root.find("trim-marks")
        )

    def test_rounded_clipping(self):
        self.assertEqual(self.compose().root.find("sticker-content").attrs["clip-path"], "url(#sticker-clip)")
        content = self.compose(options=StickerOptions(rounded=False)).root.find("sticker-content")
        self.assertNotIn("clip-path", content.attrs)

    def test_color_override(self):
        colors = StickerColors(background="#ffffff", border="#ff0000")
        document = self.compose(options=StickerOptions(colors=colors))
        self.assertEqual(document.root.find("background").attrs["fill"], "#ffffff")
        self.assertEqual(document.root.find("border").attrs["stroke"], "#ff0000")

    def test_large_logo_warns_below_level_h(self):
        config = dataclasses.replace(DEFAULT_CONFIG, logo=LogoStyle(size_px=100))
        with self.assertLogs("peakbook_qr.svg_builder", level="WARNING") as logs:
            self.compose(config=config)
        self.assertTrue(any("level H is recommended" in line for line in logs.output))

    def test_serialized_document_is_well_formed(self):
        svg = svg_to_string(self.compose(caption="Scan this code to check in at the summit cross"))
        root = ET.fromstring(svg.encode("utf-8"))
        self.assertEqual(root.tag, f"{{{SVG_NS}}}svg")
        self.assertIsNotNone(root.find(f".//{{{SVG_NS}}}text[@id='brand']"))


if __name__ == "__main__":
    unittest.main()
