"""Static sticker geometry, styling and capacity configuration.

All pixel values assume 96 DPI, the resolution browsers and most SVG
renderers use for CSS pixels.
"""

from dataclasses import dataclass, field
from urllib.parse import urlsplit

CSS_DPI = 96
MM_PER_INCH = 25.4

ECC_LEVELS = ("L", "M", "Q", "H")

# Approximate byte-mode capacity at version 40 per error correction level
CAPACITY_LIMITS = {
    "L": 2953,  # Low (7%)
    "M": 2331,  # Medium (15%)
    "Q": 1663,  # Quartile (25%)
    "H": 1273,  # High (30%)
}
NEAR_LIMIT_PERCENT = 80

ECC_DESCRIPTIONS = {
    "L": "Low (7% recovery)",
    "M": "Medium (15% recovery)",
    "Q": "Quartile (25% recovery)",
    "H": "High (30% recovery)",
}

MESSAGES = {
    "TOKEN_REQUIRED": "Token is required",
    "TOKEN_INVALID_LENGTH": "Token must be exactly 20 characters long",
    "TOKEN_INVALID_CHARS": "Token can only contain uppercase letters (A-Z) and numbers (0-9)",
    "CAPTION_TOO_LONG": "Caption cannot exceed 50 characters",
    "CAPTION_INVALID_CHARS": "Caption contains characters that may not print correctly",
    "PARAM_REQUIRED": "Parameter name is required",
    "PARAM_INVALID": (
        "Parameter name must start with a letter and contain only letters, "
        "numbers, underscores, or hyphens"
    ),
    "ECC_INVALID": "Error correction level must be L, M, Q, or H",
    "URL_INVALID": "Generated URL is invalid",
    "QR_GENERATION_FAILED": "Failed to generate QR code. Please try again.",
}


def mm_to_px(mm: float) -> float:
    return mm * CSS_DPI / MM_PER_INCH


def px_to_mm(pixels: float) -> float:
    return pixels * MM_PER_INCH / CSS_DPI


def cm_to_px(cm: float) -> int:
    return round(mm_to_px(cm * 10))


# ---------------------------------------------------------------------------
# Configuration sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StickerGeometry:
    """Printed sticker size. Pixel sizes are derived from the metric ones."""

    size_cm: float = 5
    bleed_cm: float = 0.3
    corner_radius_px: int = 15
    safe_margin_px: int = 12

    @property
    def size_px(self) -> int:
        return cm_to_px(self.size_cm)

    @property
    def bleed_px(self) -> int:
        return cm_to_px(self.bleed_cm)

    @property
    def total_size_px(self) -> int:
        return self.size_px + 2 * self.bleed_px


@dataclass(frozen=True)
class QRGeometry:
    size_cm: float = 4
    error_correction: str = "Q"
    margin: int = 0
    color_dark: str = "#000000"
    color_light: str = "#FFFFFF"

    @property
    def size_px(self) -> int:
        return cm_to_px(self.size_cm)


@dataclass(frozen=True)
class QRStyling:
    width: int = 300
    approx_modules: int = 33


@dataclass(frozen=True)
class StickerColors:
    """Sticker colour scheme.

    ``background`` fills the canvas and the light QR modules, ``dots`` and
    ``corners`` colour the dark modules and finder patterns, ``border`` is
    the frame stroke and ``panel`` the fill inside the frame.
    """

    background: str = "#99bdc6"
    dots: str = "#2c3239"
    corners: str = "#2c3239"
    border: str = "#2c3239"
    panel: str = "#FFFFFF"


@dataclass(frozen=True)
class FrameStyle:
    padding_px: int = 8
    radius_px: int = 12


@dataclass(frozen=True)
class TextStyle:
    font_size_px: float
    font_weight: str
    color: str
    font_family: str = '"Noto Naskh Arabic", Arial, sans-serif'
    line_height: float = 1.4


@dataclass(frozen=True)
class CaptionStyle(TextStyle):
    max_length: int = 50
    wrap_width: int = 25
    margin_from_qr: int = 8


@dataclass(frozen=True)
class BrandStyle(TextStyle):
    text: str = "peakbook"


@dataclass(frozen=True)
class LogoStyle:
    size_px: int = 38  # ~1cm
    background_padding: int = 4
    shadow_blur: float = 2
    shadow_opacity: float = 0.15
    max_size_percent: int = 25
    fallback_color: str = "#2563eb"


@dataclass(frozen=True)
class ExportSettings:
    filename_template: str = "peakbook-qr-{token}.svg"
    svg_namespace: str = "http://www.w3.org/2000/svg"
    xlink_namespace: str = "http://www.w3.org/1999/xlink"
    generator_name: str = "Peakbook QR Generator"
    document_version: str = "1.0"
    print_dpi: int = 300
    preview_size_px: int = 280


@dataclass(frozen=True)
class QRConfig:
    base_url: str = "https://peakbook.app/scan"
    default_param_name: str = "token"
    token_length: int = 20
    token_alphabet: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    include_trim_marks: bool = False
    logo_fetch_timeout: float = 10

    sticker: StickerGeometry = field(default_factory=StickerGeometry)
    qr: QRGeometry = field(default_factory=QRGeometry)
    styling: QRStyling = field(default_factory=QRStyling)
    colors: StickerColors = field(default_factory=StickerColors)
    frame: FrameStyle = field(default_factory=FrameStyle)
    caption: CaptionStyle = field(
        default_factory=lambda: CaptionStyle(font_size_px=11, font_weight="600", color="#1f2937")
    )
    brand: BrandStyle = field(
        default_factory=lambda: BrandStyle(font_size_px=12, font_weight="700", color="#2c3239")
    )
    logo: LogoStyle = field(default_factory=LogoStyle)
    export: ExportSettings = field(default_factory=ExportSettings)

    @property
    def domain(self) -> str:
        return urlsplit(self.base_url).hostname or ""

    @property
    def scan_path(self) -> str:
        return urlsplit(self.base_url).path


DEFAULT_CONFIG = QRConfig()


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CapacityReport:
    within_limit: bool
    near_limit: bool
    data_length: int
    limit: int
    percent_used: int


def build_url(token: str, param_name: str | None = None, config: QRConfig = DEFAULT_CONFIG) -> str:
    """Build the scan URL a sticker encodes."""
    return f"{config.base_url}?{param_name or config.default_param_name}={token}"


def get_filename(token: str, config: QRConfig = DEFAULT_CONFIG) -> str:
    return config.export.filename_template.replace("{token}", token)


def check_qr_capacity(data: str, ecc_level: str = "H") -> CapacityReport:
    """Compare the encoded size of ``data`` with the capacity of ``ecc_level``.

    Unknown levels are checked against the most restrictive (H) limit.
    """
    data_length = len(data.encode("utf-8"))
    limit = CAPACITY_LIMITS.get(ecc_level, CAPACITY_LIMITS["H"])

    return CapacityReport(
        within_limit=data_length <= limit,
        near_limit=data_length * 100 >= limit * NEAR_LIMIT_PERCENT,
        data_length=data_length,
        limit=limit,
        percent_used=round(data_length * 100 / limit),
    )


def get_ecc_description(level: str) -> str:
    return ECC_DESCRIPTIONS.get(level, ECC_DESCRIPTIONS["H"])


def get_preview_size(container_width: int, config: QRConfig = DEFAULT_CONFIG) -> int:
    """Preview size for a container, between 200px and the configured maximum."""
    return max(200, min(container_width - 32, config.export.preview_size_px))
