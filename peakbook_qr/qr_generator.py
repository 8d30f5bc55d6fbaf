"""Generate QR code matrices as SVG for sticker composition."""

import io
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import qrcode
import segno
from qrcode.image.styles.moduledrawers.svg import SvgPathCircleDrawer, SvgPathSquareDrawer
from qrcode.image.svg import SvgPathImage

from peakbook_qr.config import (
    DEFAULT_CONFIG,
    CapacityReport,
    QRConfig,
    StickerColors,
    build_url,
    check_qr_capacity,
    mm_to_px,
)
from peakbook_qr.validator import ValidationResult, validate_ecc_level, validate_url

logger = logging.getLogger(__name__)

_QRCODE_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}

_LENGTH = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*([a-z%]*)\s*$")
_UNIT_TO_PX = {"": 1.0, "px": 1.0, "mm": mm_to_px(1), "cm": mm_to_px(10), "in": mm_to_px(25.4)}


class QRCapacityError(ValueError):
    """Raised when data does not fit the chosen error correction level."""

    def __init__(self, capacity: CapacityReport, ecc_level: str):
        self.data_length = capacity.data_length
        self.limit = capacity.limit
        self.ecc_level = ecc_level
        super().__init__(
            f"Data too long for QR code at error correction level {ecc_level} "
            f"({capacity.data_length}/{capacity.limit} chars)"
        )


class QRGenerationError(RuntimeError):
    """Raised when neither the styled nor the basic encoder produced a symbol."""


class InvalidSVGError(ValueError):
    """Raised when encoder output is not a parseable SVG document."""


class StickerSvgImage(SvgPathImage):
    """Path SVG with the finder patterns in a second, separately coloured path."""

    def __init__(self, *args, dots_color="#000000", corners_color="#000000", background=None, **kwargs):
        self.dots_color = dots_color
        self.corners_color = corners_color
        self.background = background
        self._corner_subpaths: list[str] = []
        super().__init__(*args, **kwargs)

    def process(self):
        style = dict(self.QR_PATH_STYLE)
        self.path = ET.Element("path", d="".join(self._subpaths), id="qr-dots",
                               **{**style, "fill": self.dots_color})
        corners = ET.Element("path", d="".join(self._corner_subpaths), id="qr-corners",
                             **{**style, "fill": self.corners_color})
        self._subpaths = []
        self._corner_subpaths = []
        self._img.append(self.path)
        self._img.append(corners)


class CornerSquareDrawer(SvgPathSquareDrawer):
    """Square finder modules, collected apart from the data modules."""

    def drawrect(self, box, is_active: bool):
        if is_active:
            self.img._corner_subpaths.append(self.subpath(box))


@dataclass(frozen=True)
class Bounds:
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


@dataclass(frozen=True)
class ModuleInfo:
    type: str
    index: int
    attributes: dict
    bounds: Bounds


@dataclass
class ParsedSVG:
    root: ET.Element
    width: float
    height: float
    view_box: str | None
    modules: list[ModuleInfo]


@dataclass
class QRGenerationResult:
    """One encoded QR symbol plus the metadata the composer needs."""

    svg_string: str
    width: float
    height: float
    view_box: str | None
    modules: list[ModuleInfo]
    module_count: int
    data: str
    ecc_level: str
    encoder: str
    capacity: CapacityReport
    options: dict = field(default_factory=dict)
    token: str | None = None
    url: str | None = None
    param_name: str | None = None
    validation: ValidationResult | None = None


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def generate_svg(
    data: str,
    ecc_level: str | None = None,
    colors: StickerColors | None = None,
    config: QRConfig = DEFAULT_CONFIG,
) -> QRGenerationResult:
    """Encode ``data`` as an SVG QR symbol.

    The styled encoder (python-qrcode, round dots and square finder
    patterns in the sticker colours) is tried first. If it fails for any
    reason the basic encoder (segno, square modules, black on white)
    produces the symbol instead, with the same error correction level and
    result shape.

    Args:
        data: Text to encode, normally a scan URL.
        ecc_level: One of L, M, Q, H. Defaults to the configured level.
        colors: Colour scheme for the styled encoder.
        config: Sticker configuration.

    Returns:
        QRGenerationResult describing the symbol.

    Raises:
        ValueError: If the error correction level is unknown.
        QRCapacityError: If the data exceeds the level's capacity. Checked
            before any encoder runs.
        QRGenerationError: If both encoders fail.
    """
    ecc_level = ecc_level or config.qr.error_correction
    level_check = validate_ecc_level(ecc_level)
    if not level_check.valid:
        raise ValueError(level_check.error)

    capacity = check_qr_capacity(data, ecc_level)
    if not capacity.within_limit:
        raise QRCapacityError(capacity, ecc_level)

    colors = colors or config.colors

    try:
        svg_string, module_count, options = _encode_styled(data, ecc_level, colors, config)
        encoder = "styled"
    except Exception as e:
        logger.warning("Styled QR generation failed, falling back to basic encoder: %s", e)
        try:
            svg_string, module_count, options = _encode_basic(data, ecc_level, config)
        except Exception as basic_error:
            raise QRGenerationError(f"QR generation failed: {basic_error}") from basic_error
        encoder = "basic"

    dark_colors = {colors.dots, colors.corners, config.qr.color_dark}
    parsed = parse_svg_string(svg_string, dark_colors, config)
    logger.debug(
        "Generated %s QR symbol: %d modules, %d dark elements, %d%% capacity",
        encoder, module_count, len(parsed.modules), capacity.percent_used,
    )

    return QRGenerationResult(
        svg_string=svg_string,
        width=parsed.width,
        height=parsed.height,
        view_box=parsed.view_box,
        modules=parsed.modules,
        module_count=module_count,
        data=data,
        ecc_level=ecc_level,
        encoder=encoder,
        capacity=capacity,
        options=options,
    )


def _encode_styled(data: str, ecc_level: str, colors: StickerColors, config: QRConfig):
    qr = qrcode.QRCode(
        error_correction=_QRCODE_LEVELS[ecc_level],
        box_size=10,
        border=config.qr.margin,
    )
    qr.add_data(data)
    qr.make(fit=True)

    options = {
        "box_size": 10,
        "border": config.qr.margin,
        "dots": "circle",
        "corners": "square",
        "dots_color": colors.dots,
        "corners_color": colors.corners,
        "background": colors.background,
    }
    image = qr.make_image(
        image_factory=StickerSvgImage,
        module_drawer=SvgPathCircleDrawer(),
        eye_drawer=CornerSquareDrawer(),
        dots_color=colors.dots,
        corners_color=colors.corners,
        background=colors.background,
    )
    return image.to_string(encoding="unicode"), qr.modules_count, options


def _encode_basic(data: str, ecc_level: str, config: QRConfig):
    qr = segno.make(data, error=ecc_level, mode="byte", micro=False, boost_error=False)
    module_count = qr.symbol_size(scale=1, border=0)[0]

    options = {
        "kind": "svg",
        "scale": max(1, config.styling.width // module_count),
        "border": config.qr.margin,
        "dark": config.qr.color_dark,
        "light": config.qr.color_light,
        "xmldecl": False,
        "nl": False,
    }
    out = io.BytesIO()
    qr.save(out, **options)
    return out.getvalue().decode("utf-8"), module_count, options


def generate_from_token(
    token: str,
    ecc_level: str | None = None,
    param_name: str | None = None,
    colors: StickerColors | None = None,
    config: QRConfig = DEFAULT_CONFIG,
) -> QRGenerationResult:
    """Encode the scan URL for ``token``.

    Raises:
        ValueError: If the resulting URL is not a valid scan URL.
    """
    param_name = param_name or config.default_param_name
    url = build_url(token, param_name, config)

    validation = validate_url(url, config)
    if not validation.valid:
        raise ValueError(validation.error)

    logger.debug("Generating QR from token %s (%s)", token, url)
    result = generate_svg(url, ecc_level=ecc_level, colors=colors, config=config)
    result.token = token
    result.url = url
    result.param_name = param_name
    result.validation = validation
    return result


def get_recommended_ecc(has_logo: bool = True, environment: str = "office") -> str:
    """Recommend an error correction level for a use case.

    A centered logo occludes a large part of the matrix, so it always
    needs H. Without a logo the scanning environment decides.
    """
    if has_logo:
        return "H"

    return {"outdoor": "Q", "mobile": "M"}.get(environment, "H")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_svg_string(
    svg_string: str,
    dark_colors=None,
    config: QRConfig = DEFAULT_CONFIG,
) -> ParsedSVG:
    """Parse encoder output into an element tree plus module metadata.

    Raises:
        InvalidSVGError: If the text is not XML or the root is not ``<svg>``.
    """
    try:
        root = ET.fromstring(svg_string)
    except (ET.ParseError, TypeError) as e:
        raise InvalidSVGError(f"Invalid SVG generated: {e}") from e

    if _tag_name(root.tag) != "svg":
        raise InvalidSVGError("Generated content is not a valid SVG element")

    view_box = root.get("viewBox")
    box_size = _view_box_size(view_box)
    width = _parse_length(root.get("width"))
    height = _parse_length(root.get("height"))
    if width is None:
        width = box_size[0] if box_size else config.qr.size_px
    if height is None:
        height = box_size[1] if box_size else config.qr.size_px

    if dark_colors is None:
        dark_colors = {config.qr.color_dark}
    modules = extract_qr_modules(root, dark_colors)

    return ParsedSVG(root=root, width=width, height=height, view_box=view_box, modules=modules)


def extract_qr_modules(root: ET.Element, dark_colors) -> list[ModuleInfo]:
    """Collect dark path/rect/circle elements, identified by fill or stroke."""
    dark = {c.lower() for c in dark_colors} | {"#000", "#000000", "black"}
    modules = []

    for index, element in enumerate(e for e in root.iter() if _tag_name(e.tag) in ("path", "rect", "circle")):
        paint = {(element.get("fill") or "").lower(), (element.get("stroke") or "").lower()}
        if paint & dark:
            modules.append(ModuleInfo(
                type=_tag_name(element.tag),
                index=index,
                attributes=dict(element.attrib),
                bounds=_element_bounds(element),
            ))

    return modules


def _tag_name(tag) -> str:
    return tag.rsplit("}", 1)[-1].lower() if isinstance(tag, str) else ""


def _parse_length(value: str | None) -> float | None:
    """Length in pixels, or None when missing or in a relative unit."""
    if not value:
        return None
    match = _LENGTH.match(value.lower())
    if not match or match.group(2) not in _UNIT_TO_PX:
        return None
    return float(match.group(1)) * _UNIT_TO_PX[match.group(2)]


def _view_box_size(view_box: str | None) -> tuple[float, float] | None:
    if not view_box:
        return None
    try:
        _, _, width, height = (float(v) for v in view_box.replace(",", " ").split())
    except ValueError:
        return None
    return width, height


def _element_bounds(element: ET.Element) -> Bounds:
    def number(name: str) -> float:
        try:
            return float(element.get(name, 0))
        except ValueError:
            return 0.0

    if _tag_name(element.tag) == "circle":
        r = number("r")
        return Bounds(number("cx") - r, number("cy") - r, 2 * r, 2 * r)
    return Bounds(number("x"), number("y"), number("width"), number("height"))
