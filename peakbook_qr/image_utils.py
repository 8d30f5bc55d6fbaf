"""Logo loading and raster utilities for sticker generation."""

import base64
import io
import logging
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import qrcode
from PIL import Image, ImageDraw

from peakbook_qr.config import DEFAULT_CONFIG, QRConfig
from peakbook_qr.document import SvgNode, from_element

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).parent / "assets"

# Logos are rasterized at a multiple of their on-sticker size so they stay
# sharp at print resolution.
RASTER_SCALE = 4

_QRCODE_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


class VerifyResult(Enum):
    """Result of QR scannability verification."""
    SCANNABLE = "scannable"
    NOT_SCANNABLE = "not_scannable"
    SKIPPED = "skipped"  # pyzbar not installed


class LogoLoadError(Exception):
    """Raised when a logo reference cannot be turned into sticker content."""


@dataclass
class LogoAsset:
    """A loaded logo: either an inline SVG node or an image href."""

    kind: str  # "svg" or "image"
    source: str
    node: SvgNode | None = None
    href: str | None = None


def default_logo_path() -> Path:
    return ASSETS_DIR / "logo.svg"


# ---------------------------------------------------------------------------
# Logo loading
# ---------------------------------------------------------------------------

def load_logo(ref: str | Path | None, config: QRConfig = DEFAULT_CONFIG) -> LogoAsset:
    """Load a logo from inline SVG text, an http(s) URL or a file path.

    SVG logos are embedded as nodes. Raster logos are center-cropped to a
    square, resized and embedded as a PNG data URI.

    Raises:
        LogoLoadError: If the reference is empty, cannot be fetched, or is
            neither SVG nor a readable image.
    """
    if not ref:
        raise LogoLoadError("No logo reference given")

    ref_text = str(ref)
    if ref_text.lstrip().startswith("<"):
        return LogoAsset(kind="svg", source="inline", node=_parse_logo_svg(ref_text.encode("utf-8")))

    content = _fetch(ref_text, config.logo_fetch_timeout)

    if _looks_like_svg(content):
        return LogoAsset(kind="svg", source=ref_text, node=_parse_logo_svg(content))

    return LogoAsset(kind="image", source=ref_text, href=_raster_data_uri(content, config.logo.size_px))


def _fetch(ref: str, timeout: float) -> bytes:
    try:
        if ref.startswith(("http://", "https://")):
            with urllib.request.urlopen(ref, timeout=timeout) as response:
                return response.read()
        return Path(ref).read_bytes()
    except (OSError, ValueError) as e:
        raise LogoLoadError(f"Failed to load logo '{ref}': {e}") from e


def _looks_like_svg(content: bytes) -> bool:
    head = content[:1024].lstrip().lower()
    return head.startswith(b"<?xml") or b"<svg" in head


def _parse_logo_svg(content: bytes) -> SvgNode:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise LogoLoadError(f"Logo is not valid SVG: {e}") from e

    node = from_element(root)
    if node.tag != "svg":
        raise LogoLoadError("Logo root element is not <svg>")
    return node


def _raster_data_uri(content: bytes, size: int) -> str:
    try:
        img = Image.open(io.BytesIO(content))
        img = img.convert("RGBA")
    except (OSError, SyntaxError) as e:
        raise LogoLoadError(f"Could not open logo image: {e}") from e

    img = _center_crop_square(img)
    img = img.resize((size * RASTER_SCALE, size * RASTER_SCALE), Image.LANCZOS)

    out = io.BytesIO()
    img.save(out, "PNG")
    return "data:image/png;base64," + base64.b64encode(out.getvalue()).decode("ascii")


def _center_crop_square(img: Image.Image) -> Image.Image:
    """Take the largest centered square region from the image."""
    width, height = img.size
    if width == height:
        return img

    side = min(width, height)
    left = (width - side) // 2
    top = (height - side) // 2
    return img.crop((left, top, left + side, top + side))


# ---------------------------------------------------------------------------
# Scan verification
# ---------------------------------------------------------------------------

def render_qr_image(data: str, ecc_level: str = "Q", size: int = 600) -> Image.Image:
    """Render ``data`` as a black-on-white QR image with a quiet zone."""
    qr = qrcode.QRCode(
        error_correction=_QRCODE_LEVELS.get(ecc_level, qrcode.constants.ERROR_CORRECT_H),
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    return img.resize((size, size), Image.NEAREST)


def occlude_center(img: Image.Image, coverage_percent: float) -> Image.Image:
    """Paint a white square over the center covering ``coverage_percent`` of the symbol."""
    if coverage_percent <= 0:
        return img

    occluded = img.copy()
    width, height = occluded.size
    side = int(min(width, height) * (coverage_percent / 100) ** 0.5)
    left = (width - side) // 2
    top = (height - side) // 2
    ImageDraw.Draw(occluded).rectangle((left, top, left + side, top + side), fill="white")
    return occluded


def verify_qr_scannable(
    data: str,
    ecc_level: str = "Q",
    coverage_percent: float = 0,
) -> tuple[VerifyResult, str | None]:
    """Check that the symbol for ``data`` still decodes with the logo area covered.

    Uses pyzbar if available, otherwise returns SKIPPED.

    Args:
        data: Encoded text, normally the scan URL.
        ecc_level: Error correction level used on the sticker.
        coverage_percent: Share of the symbol area hidden by the logo badge.

    Returns:
        Tuple of (VerifyResult, decoded_data: str | None).
    """
    try:
        from pyzbar.pyzbar import decode as pyzbar_decode
    except ImportError:
        return VerifyResult.SKIPPED, None

    img = occlude_center(render_qr_image(data, ecc_level), coverage_percent)
    try:
        results = pyzbar_decode(img)
    except Exception as e:
        logger.warning("QR decode failed: %s", e)
        return VerifyResult.NOT_SCANNABLE, None

    if results:
        decoded = results[0].data.decode("utf-8")
        if decoded == data:
            return VerifyResult.SCANNABLE, decoded
        return VerifyResult.NOT_SCANNABLE, decoded
    return VerifyResult.NOT_SCANNABLE, None
