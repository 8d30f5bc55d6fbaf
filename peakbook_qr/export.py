"""Serialize, preview, print-wrap and save sticker documents."""

import base64
import html
import logging
import os
import re
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

from peakbook_qr.config import DEFAULT_CONFIG, QRConfig, get_filename, px_to_mm
from peakbook_qr.document import ElementRenderer, StringRenderer
from peakbook_qr.svg_builder import StickerDocument
from peakbook_qr.validator import validate_filename, validate_svg_content

logger = logging.getLogger(__name__)

__all__ = [
    "XML_DECLARATION",
    "create_data_url",
    "create_preview_svg",
    "generate_print_html",
    "get_filename",
    "save_svg",
    "svg_to_string",
    "to_element",
    "validate_file_size",
]

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="no"?>'

FILE_SIZE_LIMITS_MB = {"svg": 5, "png": 50}

_XML_DECL = re.compile(r"^\s*<\?xml[^>]*\?>\s*")
_SVG_OPEN = re.compile(r"<svg\b[^>]*>")
_XMLNS_ATTR = re.compile(r'\s+xmlns(:xlink)?="[^"]*"')


def svg_to_string(document: StickerDocument | str, config: QRConfig = DEFAULT_CONFIG) -> str:
    """Serialize a sticker with an XML declaration and both namespace declarations.

    Strings are normalized the same way, so output from any source carries
    the default and xlink namespaces exactly once on the root element.
    """
    if isinstance(document, StickerDocument):
        body = StringRenderer().render(document.root)
    else:
        body = _XML_DECL.sub("", document)

    namespaces = (
        f'<svg xmlns="{config.export.svg_namespace}" '
        f'xmlns:xlink="{config.export.xlink_namespace}"'
    )

    def normalize_root(match: re.Match) -> str:
        return namespaces + _XMLNS_ATTR.sub("", match.group(0))[len("<svg"):]

    body = _SVG_OPEN.sub(normalize_root, body, count=1)
    return f"{XML_DECLARATION}\n{body}"


def to_element(document: StickerDocument) -> ET.Element:
    return ElementRenderer().render(document.root)


def create_preview_svg(document: StickerDocument | str, preview_size: int | None = None,
                       config: QRConfig = DEFAULT_CONFIG) -> str:
    """Screen preview: resized, without trim marks, with a light card style."""
    preview_size = preview_size or config.export.preview_size_px

    if isinstance(document, StickerDocument):
        root = to_element(document)
    else:
        root = ET.fromstring(_XML_DECL.sub("", document))

    root.set("width", str(preview_size))
    root.set("height", str(preview_size))
    root.set("style", "border-radius: 8px; box-shadow: 0 1px 3px rgba(0,0,0,0.1);")

    for parent in root.iter():
        for child in list(parent):
            if child.get("id") == "trim-marks":
                parent.remove(child)

    return ET.tostring(root, encoding="unicode")


def create_data_url(svg: str) -> str:
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def validate_file_size(content: str | bytes, kind: str = "svg") -> dict:
    size_bytes = len(content.encode("utf-8") if isinstance(content, str) else content)
    size_mb = size_bytes / (1024 * 1024)
    limit = FILE_SIZE_LIMITS_MB.get(kind, FILE_SIZE_LIMITS_MB["svg"])

    return {
        "size_bytes": size_bytes,
        "size_mb": round(size_mb, 2),
        "within_limit": size_mb <= limit,
        "warning": (
            f"File size ({size_mb:.1f}MB) exceeds recommended limit of {limit}MB"
            if size_mb > limit else None
        ),
    }


def generate_print_html(
    svg: str,
    token: str,
    title: str | None = None,
    show_instructions: bool = True,
    config: QRConfig = DEFAULT_CONFIG,
) -> str:
    """Wrap a serialized sticker in a print-ready HTML page.

    The sticker is embedded unchanged as a data URL and sized in
    millimetres, so printing at 100% scale reproduces its physical size
    including bleed.
    """
    sticker = config.sticker
    canvas_mm = px_to_mm(sticker.total_size_px)
    size_text = f"{sticker.size_cm:g}cm × {sticker.size_cm:g}cm"
    bleed_mm = f"{sticker.bleed_cm * 10:g}mm"
    title = html.escape(title or f"Peakbook QR Sticker - {token}")

    instructions = ""
    if show_instructions:
        generated = datetime.now().strftime("%Y-%m-%d %H:%M")
        instructions = f"""
        <div class="print-info">
            <h2>Sticker Information</h2>
            <div class="token-info">
                <strong>Token:</strong> {html.escape(token)}<br>
                <strong>Size:</strong> {size_text} (with {bleed_mm} bleed)<br>
                <strong>Generated:</strong> {generated}
            </div>
            <h3>Printing Guidelines:</h3>
            <ol>
                <li>Print at 100% scale (no fit to page)</li>
                <li>Use high-quality print settings ({config.export.print_dpi} DPI minimum)</li>
                <li>Print on white or light-colored stock</li>
                <li>For professional printing, inform printer of {bleed_mm} bleed margins</li>
                <li>Test scan the printed QR code before bulk production</li>
            </ol>
            <h3>Quality Check:</h3>
            <ul>
                <li>QR modules should be crisp and well-defined</li>
                <li>Logo should be centered and clearly visible</li>
                <li>Caption text should be readable</li>
                <li>Overall sticker should be {size_text} when trimmed</li>
            </ul>
        </div>"""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>{title}</title>
    <style>
        @page {{ size: A4; margin: 20mm; }}
        body {{ margin: 0; font-family: system-ui, -apple-system, sans-serif; background: white; color: black; }}
        .print-container {{ text-align: center; }}
        .sticker-wrapper {{ display: inline-block; margin: 20mm auto; padding: 5mm; border: 1px dashed #ccc; }}
        .sticker-svg {{ width: {canvas_mm:.2f}mm; height: {canvas_mm:.2f}mm; display: block; }}
        .print-info {{ margin-top: 10mm; padding: 5mm; border: 1px solid #ddd; background: #f9f9f9; text-align: left; }}
        .token-info {{ background: #e3f2fd; padding: 8px; border-radius: 4px; font-family: monospace; }}
        @media print {{
            body {{ -webkit-print-color-adjust: exact; print-color-adjust: exact; }}
            .sticker-wrapper {{ border: none; padding: 0; margin: 10mm auto; }}
            .print-info {{ page-break-before: always; }}
        }}
    </style>
</head>
<body>
    <div class="print-container">
        <div class="sticker-wrapper">
            <img class="sticker-svg" alt="{title}" src="{create_data_url(svg)}">
        </div>{instructions}
    </div>
</body>
</html>
"""


def save_svg(
    svg: str,
    filename: str,
    directory: str | Path = ".",
    overwrite: bool = False,
) -> Path:
    """Write a serialized sticker to ``directory`` under a sanitized filename.

    Raises:
        ValueError: If the content is not an SVG document.
        FileExistsError: If the target exists and ``overwrite`` is False.
    """
    check = validate_svg_content(svg)
    if not check.valid:
        raise ValueError(f"Invalid SVG: {', '.join(check.issues)}")
    for issue in check.issues:
        logger.warning("SVG check: %s", issue)

    name = validate_filename(filename)
    if not name.valid:
        logger.warning("Filename '%s' adjusted to '%s': %s", filename, name.sanitized, name.error)

    os.makedirs(directory, exist_ok=True)
    path = Path(directory) / name.sanitized
    if path.exists() and not overwrite:
        raise FileExistsError(f"Output file already exists: {path}")

    path.write_text(svg, encoding="utf-8")
    logger.debug("Saved sticker to %s (%d bytes)", path, len(svg))
    return path
