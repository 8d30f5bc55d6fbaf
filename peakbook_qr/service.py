"""Entry points used by the admin application.

These functions never raise: validation problems and generation failures
come back as ``{"success": False, ...}`` results.
"""

import logging
import secrets
from collections.abc import Mapping

from peakbook_qr.config import DEFAULT_CONFIG, MESSAGES, QRConfig, get_filename
from peakbook_qr.export import svg_to_string
from peakbook_qr.image_utils import default_logo_path
from peakbook_qr.qr_generator import generate_from_token
from peakbook_qr.svg_builder import StickerOptions, create_sticker_svg
from peakbook_qr.validator import (
    QRFormData,
    get_token_help_text,
    validate_all,
    validate_svg_content,
)
from peakbook_qr.validator import validate_token as _validate_token

logger = logging.getLogger(__name__)


def generate_qr_code(
    form: QRFormData | Mapping,
    logo_ref=None,
    options: StickerOptions | None = None,
    config: QRConfig = DEFAULT_CONFIG,
) -> dict:
    """Validate a sticker request and build the finished sticker SVG.

    Args:
        form: Token, optional caption, parameter name and ECC level, as a
            QRFormData or a mapping with the same keys.
        logo_ref: Center logo (inline SVG, URL or path). Defaults to the
            bundled logo.
        options: Composer options. Defaults to rounded corners and the
            configured trim mark setting.
        config: Sticker configuration.

    Returns:
        ``{"success": True, "data": {"svg", "token", "url", "filename",
        "degraded"}}`` or
        ``{"success": False, "error": str, "errors": dict}``.
    """
    if isinstance(form, Mapping):
        form = QRFormData(
            token=form.get("token"),
            caption=form.get("caption"),
            param_name=form.get("param_name"),
            ecc_level=form.get("ecc_level"),
        )

    validation = validate_all(form, config)
    if not validation.valid:
        return {
            "success": False,
            "error": next(iter(validation.errors.values()), "Validation failed"),
            "errors": validation.errors,
        }

    try:
        qr_result = generate_from_token(
            form.token,
            ecc_level=form.ecc_level or config.qr.error_correction,
            param_name=form.param_name or config.default_param_name,
            config=config,
        )
        document = create_sticker_svg(
            qr_result,
            logo_ref or default_logo_path(),
            form.caption or "",
            options or StickerOptions(rounded=True),
            config=config,
        )
        svg = svg_to_string(document, config)
    except Exception as e:
        logger.exception("QR generation error for token %s", form.token)
        return {"success": False, "error": str(e) or MESSAGES["QR_GENERATION_FAILED"]}

    for issue in validate_svg_content(svg).issues:
        logger.warning("Generated SVG check: %s", issue)

    return {
        "success": True,
        "data": {
            "svg": svg,
            "token": form.token,
            "url": qr_result.url,
            "filename": get_filename(form.token, config),
            "degraded": list(document.degraded),
        },
    }


def generate_random_token(length: int | None = None, config: QRConfig = DEFAULT_CONFIG) -> str:
    """Random sticker token. Persisting it is the caller's job."""
    length = length or config.token_length
    return "".join(secrets.choice(config.token_alphabet) for _ in range(length))


def validate_token(token, config: QRConfig = DEFAULT_CONFIG) -> dict:
    """Live form feedback for the token field."""
    result = _validate_token(token, config)
    return {
        "valid": result.valid,
        "error": result.error,
        "help_text": get_token_help_text(token, config),
    }
