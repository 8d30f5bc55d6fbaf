"""Input and output validation for sticker generation.

Every function here is pure and total: malformed input produces a failed
result, never an exception.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from peakbook_qr.config import (
    DEFAULT_CONFIG,
    ECC_LEVELS,
    MESSAGES,
    CapacityReport,
    QRConfig,
    build_url,
    check_qr_capacity,
    px_to_mm,
)

TOKEN_CHARS = re.compile(r"[A-Z0-9]+")
PARAM_NAME_PATTERN = re.compile(r"[a-zA-Z][a-zA-Z0-9_-]*")
PROBLEMATIC_CHARS = re.compile(r"[<>{}\\]")
UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')

MAX_FILENAME_LENGTH = 200
MAX_SVG_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


@dataclass
class QRFormData:
    """Sticker request as submitted by the admin form."""

    token: str
    caption: str | None = None
    param_name: str | None = None
    ecc_level: str | None = None


@dataclass
class FormValidation:
    valid: bool
    errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ScannabilityReport:
    scannable: bool
    warning: str | None
    capacity: CapacityReport


@dataclass(frozen=True)
class FilenameCheck:
    valid: bool
    error: str | None
    sanitized: str


@dataclass
class PrintCheck:
    valid: bool
    warnings: list[str] = field(default_factory=list)


@dataclass
class SvgCheck:
    valid: bool
    issues: list[str] = field(default_factory=list)


_OK = ValidationResult(True)


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------

def validate_token(token, config: QRConfig = DEFAULT_CONFIG) -> ValidationResult:
    """Validate a sticker token.

    Length is checked before the character set so the first reported
    problem is the simplest one to fix.
    """
    if not token:
        return ValidationResult(False, MESSAGES["TOKEN_REQUIRED"])
    if not isinstance(token, str):
        return ValidationResult(False, MESSAGES["TOKEN_INVALID_CHARS"])

    if len(token) != config.token_length:
        return ValidationResult(False, MESSAGES["TOKEN_INVALID_LENGTH"])

    if not TOKEN_CHARS.fullmatch(token):
        return ValidationResult(False, MESSAGES["TOKEN_INVALID_CHARS"])

    return _OK


def validate_caption(caption, config: QRConfig = DEFAULT_CONFIG) -> ValidationResult:
    if not caption:
        return _OK
    if not isinstance(caption, str):
        return ValidationResult(False, MESSAGES["CAPTION_INVALID_CHARS"])

    if len(caption) > config.caption.max_length:
        return ValidationResult(False, MESSAGES["CAPTION_TOO_LONG"])

    if PROBLEMATIC_CHARS.search(caption):
        return ValidationResult(False, MESSAGES["CAPTION_INVALID_CHARS"])

    return _OK


def validate_parameter_name(name) -> ValidationResult:
    if not name:
        return ValidationResult(False, MESSAGES["PARAM_REQUIRED"])

    if not isinstance(name, str) or not PARAM_NAME_PATTERN.fullmatch(name):
        return ValidationResult(False, MESSAGES["PARAM_INVALID"])

    return _OK


def validate_url(url, config: QRConfig = DEFAULT_CONFIG) -> ValidationResult:
    """Check that ``url`` is an https scan URL on the product domain."""
    if not url or not isinstance(url, str):
        return ValidationResult(False, "Invalid URL format")

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return ValidationResult(False, "Invalid URL format")

    if not parts.scheme or not parts.netloc:
        return ValidationResult(False, "Invalid URL format")

    if parts.scheme != "https":
        return ValidationResult(False, "URL must use HTTPS protocol")

    if hostname != config.domain:
        return ValidationResult(False, f"URL must be for {config.domain} domain")

    if parts.path != config.scan_path:
        return ValidationResult(False, f"URL must use {config.scan_path} path")

    return _OK


def validate_ecc_level(level) -> ValidationResult:
    if level not in ECC_LEVELS:
        return ValidationResult(False, MESSAGES["ECC_INVALID"])
    return _OK


def validate_all(form: QRFormData, config: QRConfig = DEFAULT_CONFIG) -> FormValidation:
    """Validate every form field, collecting all failures.

    The scan URL is only built and checked once the individual fields pass.
    """
    errors: dict[str, str] = {}

    checks = {
        "token": validate_token(form.token, config),
        "caption": validate_caption(form.caption, config),
        "param_name": validate_parameter_name(form.param_name or config.default_param_name),
    }
    if form.ecc_level:
        checks["ecc_level"] = validate_ecc_level(form.ecc_level)

    for name, result in checks.items():
        if not result.valid:
            errors[name] = result.error

    if not errors:
        url = build_url(form.token, form.param_name, config)
        url_check = validate_url(url, config)
        if not url_check.valid:
            errors["url"] = url_check.error

    return FormValidation(valid=not errors, errors=errors)


# ---------------------------------------------------------------------------
# Sanitizing and live feedback
# ---------------------------------------------------------------------------

def sanitize_input(value, kind: str = "text") -> str:
    """Strip characters that are not allowed for the given input kind."""
    if not value or not isinstance(value, str):
        return ""

    sanitized = value.strip()

    if kind == "token":
        return re.sub(r"[^A-Z0-9]", "", sanitized.upper())

    if kind == "param":
        sanitized = re.sub(r"[^a-z0-9_-]", "", sanitized.lower())
        if sanitized and not sanitized[0].isalpha():
            sanitized = "t" + sanitized
        return sanitized

    # caption and free text
    return PROBLEMATIC_CHARS.sub("", sanitized)


def format_token_input(value, config: QRConfig = DEFAULT_CONFIG) -> str:
    return sanitize_input(value, "token")[: config.token_length]


def get_token_help_text(token, config: QRConfig = DEFAULT_CONFIG) -> str:
    if not token or not isinstance(token, str):
        return f"Enter a {config.token_length}-character token"

    length = len(token)
    if length < config.token_length:
        remaining = config.token_length - length
        return f"{remaining} more character{'s' if remaining != 1 else ''} needed"

    if length == config.token_length:
        result = validate_token(token, config)
        return "✓ Token is valid" if result.valid else result.error

    return "Token is too long"


# ---------------------------------------------------------------------------
# Output checks
# ---------------------------------------------------------------------------

def check_scannability(url: str, ecc_level: str = "H") -> ScannabilityReport:
    capacity = check_qr_capacity(url, ecc_level)

    warning = None
    if not capacity.within_limit:
        warning = "URL is too long for QR code generation"
    elif capacity.near_limit:
        warning = f"URL is using {capacity.percent_used}% of QR code capacity"

    return ScannabilityReport(scannable=capacity.within_limit, warning=warning, capacity=capacity)


def validate_filename(name) -> FilenameCheck:
    """Make a download filename safe across filesystems.

    A best-effort ``sanitized`` name is returned even when the check fails.
    """
    if not name or not isinstance(name, str):
        return FilenameCheck(False, "Filename is required", "sticker.svg")

    sanitized = UNSAFE_FILENAME_CHARS.sub("_", name)
    sanitized = re.sub(r"\s+", "_", sanitized).lower()
    if not sanitized.endswith(".svg"):
        sanitized += ".svg"

    if len(sanitized) > MAX_FILENAME_LENGTH:
        truncated = sanitized[: MAX_FILENAME_LENGTH - 4] + ".svg"
        return FilenameCheck(False, "Filename is too long", truncated)

    return FilenameCheck(True, None, sanitized)


def validate_print_dimensions(width_px: float, height_px: float) -> PrintCheck:
    """Sanity-check the printed size of a sticker (warnings only)."""
    check = PrintCheck(valid=True)
    width_mm = px_to_mm(width_px)
    height_mm = px_to_mm(height_px)

    if width_mm < 10 or height_mm < 10:
        check.warnings.append("Sticker size may be too small for reliable scanning")
    if width_mm > 200 or height_mm > 200:
        check.warnings.append("Sticker size is unusually large for typical use")
    if abs(width_mm - height_mm) > 2:
        check.warnings.append("Sticker is not square - this may affect scanning")

    return check


def validate_svg_content(svg) -> SvgCheck:
    """Structural checks on serialized SVG.

    Only a missing ``<svg`` element is fatal, the other issues are warnings.
    """
    if not svg or not isinstance(svg, str) or not svg.strip():
        return SvgCheck(False, ["SVG content is empty"])

    check = SvgCheck(valid=True)

    if "<svg" not in svg:
        check.issues.append("Missing SVG root element")
        check.valid = False
    if "xmlns" not in svg:
        check.issues.append("Missing SVG namespace - may not display properly")
    if "viewBox" not in svg and "width=" not in svg:
        check.issues.append("Missing dimensions - SVG may not scale properly")
    if len(svg) > MAX_SVG_SIZE:
        check.issues.append("SVG file is very large - consider optimizing")

    return check
