"""Compose the printable sticker document around a QR symbol.

Layout inside the trimmed sticker, top to bottom: optional caption, QR
symbol with a centered logo badge, brand text. Every coordinate is
derived from the configuration on each call.
"""

import logging
import math
from dataclasses import dataclass, field

from peakbook_qr.config import DEFAULT_CONFIG, QRConfig, StickerColors
from peakbook_qr.document import SvgNode, format_number, from_element
from peakbook_qr.image_utils import LogoLoadError, load_logo
from peakbook_qr.qr_generator import InvalidSVGError, QRGenerationResult, parse_svg_string

logger = logging.getLogger(__name__)

TRIM_MARK_LENGTH = 8
TRIM_MARK_OFFSET = 2
BADGE_RADIUS_RATIO = 0.18


@dataclass
class StickerOptions:
    include_trim_marks: bool | None = None  # None: use the configured default
    rounded: bool = True
    colors: StickerColors | None = None


@dataclass(frozen=True)
class StickerLayout:
    """Computed geometry of one sticker, in CSS pixels."""

    total_size: int
    bleed: int
    size: int
    inner_x: float
    inner_y: float
    inner_width: float
    inner_height: float
    module_size: int
    caption_lines: tuple[str, ...]
    caption_line_height: float
    caption_height: float
    brand_height: float
    spacing: float
    available_height: float
    available_width: float
    qr_size: float
    qr_x: float
    qr_y: float
    logo_size: int
    badge_size: int
    logo_x: float
    logo_y: float
    logo_coverage: float  # badge area as percent of QR area


@dataclass
class StickerDocument:
    root: SvgNode
    layout: StickerLayout
    ecc_level: str | None = None
    degraded: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def wrap_caption(caption: str, width: int = 25) -> list[str]:
    """Greedy word wrap. Words longer than ``width`` get a line of their own."""
    if not caption:
        return []
    if len(caption) <= width:
        return [caption]

    lines: list[str] = []
    current = ""
    for word in caption.split():
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= width:
            current = candidate
        elif current:
            lines.append(current)
            current = word
        else:
            lines.append(word)
    if current:
        lines.append(current)
    return lines


def module_size_for(module_count: int | None, config: QRConfig = DEFAULT_CONFIG) -> int:
    """Pixel size of one QR module at the target print size."""
    count = module_count or config.styling.approx_modules
    return max(1, round(config.qr.size_px / count))


def compute_layout(config: QRConfig, caption_lines, module_size: int) -> StickerLayout:
    sticker = config.sticker
    bleed = sticker.bleed_px
    size = sticker.size_px
    padding = config.frame.padding_px

    inner_x = inner_y = bleed + padding
    inner_w = inner_h = size - padding * 2

    line_height = config.caption.font_size_px * config.caption.line_height
    caption_height = line_height * len(caption_lines)
    brand_height = config.brand.font_size_px * config.brand.line_height
    spacing = config.caption.margin_from_qr
    caption_block = caption_height + spacing if caption_lines else 0

    # keep the symbol off the border stroke
    available_h = inner_h - caption_block - spacing - brand_height - module_size
    available_w = inner_w - module_size
    qr_size = max(0, min(config.qr.size_px, available_h, available_w))

    qr_x = inner_x + (inner_w - qr_size) / 2
    qr_y = inner_y + module_size / 2 + caption_block + (available_h - qr_size) / 2

    logo_size = config.logo.size_px
    badge_size = logo_size + config.logo.background_padding * 2
    coverage = badge_size ** 2 * 100 / qr_size ** 2 if qr_size else 100.0

    return StickerLayout(
        total_size=sticker.total_size_px,
        bleed=bleed,
        size=size,
        inner_x=inner_x,
        inner_y=inner_y,
        inner_width=inner_w,
        inner_height=inner_h,
        module_size=module_size,
        caption_lines=tuple(caption_lines),
        caption_line_height=line_height,
        caption_height=caption_height,
        brand_height=brand_height,
        spacing=spacing,
        available_height=available_h,
        available_width=available_w,
        qr_size=qr_size,
        qr_x=qr_x,
        qr_y=qr_y,
        logo_size=logo_size,
        badge_size=badge_size,
        logo_x=qr_x + (qr_size - logo_size) / 2,
        logo_y=qr_y + (qr_size - logo_size) / 2,
        logo_coverage=coverage,
    )


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def create_sticker_svg(
    qr_result: QRGenerationResult,
    logo_ref,
    caption: str | None,
    options: StickerOptions | None = None,
    config: QRConfig = DEFAULT_CONFIG,
) -> StickerDocument:
    """Build the complete sticker document.

    A QR fragment that cannot be embedded is replaced by a labelled black
    placeholder and a logo that cannot be loaded by a letter badge; both
    are listed in ``StickerDocument.degraded``.

    Args:
        qr_result: Output of the QR generator.
        logo_ref: Inline SVG, URL or path of the center logo.
        caption: Optional caption printed above the symbol.
        options: Trim marks, rounded clipping and colour overrides.
        config: Sticker configuration.

    Returns:
        StickerDocument with the node tree and its computed layout.
    """
    options = options or StickerOptions()
    colors = options.colors or config.colors
    include_trim_marks = (
        config.include_trim_marks if options.include_trim_marks is None else options.include_trim_marks
    )

    lines = wrap_caption(caption or "", config.caption.wrap_width)
    layout = compute_layout(config, lines, module_size_for(getattr(qr_result, "module_count", None), config))
    ecc_level = getattr(qr_result, "ecc_level", None)
    document = StickerDocument(root=_create_main_svg(config), layout=layout, ecc_level=ecc_level)
    root = document.root

    defs = root.append(SvgNode("defs"))
    defs.append(_shadow_filter(config))
    defs.append(_clip_path(config))

    root.append(SvgNode("rect", {
        "id": "background", "x": 0, "y": 0,
        "width": layout.total_size, "height": layout.total_size, "fill": colors.background,
    }))

    if include_trim_marks:
        root.append(_trim_marks(layout))

    content = root.append(SvgNode("g", {"id": "sticker-content"}))
    if options.rounded:
        content.attrs["clip-path"] = "url(#sticker-clip)"

    framed = content.append(SvgNode("g", {"id": "framed-layout"}))
    framed.append(SvgNode("rect", {
        "id": "border",
        "x": layout.inner_x, "y": layout.inner_y,
        "width": layout.inner_width, "height": layout.inner_height,
        "rx": config.frame.radius_px, "ry": config.frame.radius_px,
        "fill": colors.panel, "stroke": colors.border, "stroke-width": layout.module_size,
    }))

    if lines:
        framed.append(_caption(layout, config))

    framed.append(_qr_group(qr_result, layout, document))
    framed.append(_logo_overlay(logo_ref, layout, document, config))
    framed.append(_brand(layout, config))

    if layout.logo_coverage > config.logo.max_size_percent and ecc_level != "H":
        logger.warning(
            "Logo badge covers %.0f%% of the QR symbol at error correction level %s; "
            "level H is recommended",
            layout.logo_coverage, ecc_level,
        )

    logger.debug("Sticker composed: qr %spx, caption lines %d, degraded %s",
                 format_number(layout.qr_size), len(lines), document.degraded or "none")
    return document


def _create_main_svg(config: QRConfig) -> SvgNode:
    sticker = config.sticker
    export = config.export
    total = sticker.total_size_px
    size_cm = format_number(sticker.size_cm)
    bleed_cm = format_number(sticker.bleed_cm)

    svg = SvgNode("svg", {
        "width": total,
        "height": total,
        "viewBox": f"0 0 {total} {total}",
        "xmlns": export.svg_namespace,
        "xmlns:xlink": export.xlink_namespace,
        "data-generator": export.generator_name,
        "data-version": export.document_version,
        "data-print-size": f"{size_cm}cm",
        "data-bleed": f"{bleed_cm}cm",
    })
    svg.append(SvgNode("title", text=f"{config.brand.text.capitalize()} QR Code Sticker"))
    svg.append(SvgNode("desc", text=(
        f"QR code sticker for {config.brand.text.capitalize()} check-in, "
        f"{size_cm}cm × {size_cm}cm with {bleed_cm}cm bleed"
    )))
    return svg


def _shadow_filter(config: QRConfig) -> SvgNode:
    transfer = SvgNode("feComponentTransfer", {"in": "offsetBlur", "result": "shadow"})
    transfer.append(SvgNode("feFuncA", {"type": "linear", "slope": config.logo.shadow_opacity}))

    merge = SvgNode("feMerge")
    merge.append(SvgNode("feMergeNode", {"in": "shadow"}))
    merge.append(SvgNode("feMergeNode", {"in": "SourceGraphic"}))

    return SvgNode("filter", {"id": "logo-shadow", "x": "-20%", "y": "-20%", "width": "140%", "height": "140%"}, [
        SvgNode("feGaussianBlur", {"in": "SourceAlpha", "stdDeviation": config.logo.shadow_blur, "result": "blur"}),
        SvgNode("feOffset", {"in": "blur", "dx": 0, "dy": 1, "result": "offsetBlur"}),
        transfer,
        merge,
    ])


def _clip_path(config: QRConfig) -> SvgNode:
    sticker = config.sticker
    radius = sticker.corner_radius_px
    return SvgNode("clipPath", {"id": "sticker-clip"}, [SvgNode("rect", {
        "x": sticker.bleed_px, "y": sticker.bleed_px,
        "width": sticker.size_px, "height": sticker.size_px,
        "rx": radius, "ry": radius,
    })])


def _trim_marks(layout: StickerLayout) -> SvgNode:
    """Corner cut marks drawn in the bleed area, outside the trim edge."""
    group = SvgNode("g", {
        "id": "trim-marks", "stroke": "#000000", "stroke-width": 0.25, "opacity": 0.5, "fill": "none",
    })
    near, far = layout.bleed, layout.bleed + layout.size

    for edge_x, dx in ((near, -1), (far, 1)):
        for edge_y, dy in ((near, -1), (far, 1)):
            x = edge_x + dx * TRIM_MARK_OFFSET
            y = edge_y + dy * TRIM_MARK_OFFSET
            group.append(SvgNode("line", {
                "x1": x, "y1": y, "x2": x, "y2": y + dy * TRIM_MARK_LENGTH, "class": "trim-mark",
            }))
            group.append(SvgNode("line", {
                "x1": x, "y1": y, "x2": x + dx * TRIM_MARK_LENGTH, "y2": y, "class": "trim-mark",
            }))
    return group


def _text_attrs(style, x: float, y: float) -> dict:
    return {
        "x": x, "y": y, "text-anchor": "middle",
        "font-family": style.font_family, "font-size": style.font_size_px,
        "font-weight": style.font_weight, "fill": style.color,
    }


def _caption(layout: StickerLayout, config: QRConfig) -> SvgNode:
    x = layout.inner_x + layout.inner_width / 2
    y = layout.inner_y + layout.module_size / 2 + layout.caption_line_height * 0.75
    text = SvgNode("text", {"id": "caption", **_text_attrs(config.caption, x, y)})

    if len(layout.caption_lines) == 1:
        text.text = layout.caption_lines[0]
        return text

    for index, line in enumerate(layout.caption_lines):
        text.append(SvgNode("tspan", {"x": x, "dy": 0 if index == 0 else layout.caption_line_height}, text=line))
    return text


def _brand(layout: StickerLayout, config: QRConfig) -> SvgNode:
    x = layout.inner_x + layout.inner_width / 2
    y = layout.inner_y + layout.inner_height - layout.module_size / 2 - layout.brand_height * 0.3
    return SvgNode("text", {"id": "brand", **_text_attrs(config.brand, x, y)}, text=config.brand.text)


def _qr_group(qr_result: QRGenerationResult, layout: StickerLayout, document: StickerDocument) -> SvgNode:
    group = SvgNode("g", {
        "id": "qr-code",
        "transform": f"translate({format_number(layout.qr_x)}, {format_number(layout.qr_y)})",
    })
    size = layout.qr_size

    try:
        parsed = parse_svg_string(getattr(qr_result, "svg_string", None))
    except InvalidSVGError as e:
        logger.warning("QR fragment could not be embedded, using placeholder: %s", e)
        document.degraded.append("qr_placeholder")
        group.append(SvgNode("rect", {"width": size, "height": size, "fill": "#000000"}))
        group.append(SvgNode("text", {
            "x": size / 2, "y": size / 2, "text-anchor": "middle", "dominant-baseline": "middle",
            "fill": "#FFFFFF", "font-size": 12,
        }, text="QR ERROR"))
        return group

    qr_svg = from_element(parsed.root)
    attrs = {k: v for k, v in qr_svg.attrs.items()
             if k not in ("width", "height", "viewBox", "version") and not k.startswith("xmlns")}
    qr_svg.attrs = {
        "width": size,
        "height": size,
        "viewBox": parsed.view_box or f"0 0 {format_number(parsed.width)} {format_number(parsed.height)}",
        "preserveAspectRatio": "xMidYMid meet",
        **attrs,
    }
    group.append(qr_svg)
    return group


def _logo_overlay(logo_ref, layout: StickerLayout, document: StickerDocument, config: QRConfig) -> SvgNode:
    group = SvgNode("g", {"id": "logo-overlay"})
    padding = config.logo.background_padding
    badge = layout.badge_size
    radius = math.floor(badge * BADGE_RADIUS_RATIO)
    x, y, size = layout.logo_x, layout.logo_y, layout.logo_size

    group.append(SvgNode("rect", {
        "x": x - padding, "y": y - padding, "width": badge, "height": badge,
        "rx": radius, "ry": radius, "fill": "#FFFFFF", "filter": "url(#logo-shadow)",
    }))

    try:
        asset = load_logo(logo_ref, config)
    except LogoLoadError as e:
        logger.warning("Logo loading failed, using fallback badge: %s", e)
        document.degraded.append("logo_fallback")
        group.append(SvgNode("circle", {
            "cx": x + size / 2, "cy": y + size / 2, "r": size / 2 - 2, "fill": config.logo.fallback_color,
        }))
        group.append(SvgNode("text", {
            "x": x + size / 2, "y": y + size / 2 + 4, "text-anchor": "middle",
            "font-family": config.caption.font_family, "font-size": size / 2,
            "font-weight": "bold", "fill": "#FFFFFF",
        }, text=config.brand.text[:1].upper()))
        return group

    if asset.kind == "svg":
        logo = asset.node.copy()
        view_box = logo.attrs.get("viewBox")
        if not view_box and logo.attrs.get("width") and logo.attrs.get("height"):
            view_box = f"0 0 {logo.attrs['width']} {logo.attrs['height']}"
        attrs = {k: v for k, v in logo.attrs.items()
                 if k not in ("x", "y", "width", "height", "viewBox") and not k.startswith("xmlns")}
        logo.attrs = {"x": x, "y": y, "width": size, "height": size, "viewBox": view_box,
                      "preserveAspectRatio": "xMidYMid meet", **attrs}
        group.append(logo)
    else:
        group.append(SvgNode("image", {
            "x": x, "y": y, "width": size, "height": size,
            "href": asset.href, "xlink:href": asset.href, "preserveAspectRatio": "xMidYMid meet",
        }))
    return group
