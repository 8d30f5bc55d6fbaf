"""CLI entry point for the Peakbook QR sticker generator."""

import argparse
import logging
import os
import sys

from peakbook_qr import __version__


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="peakbook-qr",
        description="Generate print-ready Peakbook QR check-in stickers as SVG.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sticker for an existing token
  peakbook-qr --token ABCDEFGHIJ0123456789 --caption "Scan to check in!"

  # New random token, print sheet and trim marks
  peakbook-qr --random-token --print-html sticker.html --trim-marks

  # Custom logo and error correction level
  peakbook-qr --token ABCDEFGHIJ0123456789 --logo logo.png --ecc H -o stickers/
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    # Token
    token_group = parser.add_mutually_exclusive_group(required=True)
    token_group.add_argument(
        "--token",
        help="20-character sticker token (A-Z, 0-9)",
    )
    token_group.add_argument(
        "--random-token",
        action="store_true",
        help="Generate a new random token",
    )

    # Content
    parser.add_argument(
        "--caption",
        default="",
        help="Caption printed above the QR code (max 50 characters)",
    )
    parser.add_argument(
        "--param",
        default=None,
        help="Query parameter name used in the scan URL. Default: token",
    )
    parser.add_argument(
        "--ecc",
        default=None,
        choices=["L", "M", "Q", "H"],
        help="Error correction level. Default: Q",
    )
    parser.add_argument(
        "--logo",
        default=None,
        help="Center logo: SVG or raster file path, or http(s) URL. Default: bundled logo",
    )

    # Output
    parser.add_argument(
        "--output", "-o",
        default=".",
        help="Output directory, or a .svg file path (default: current directory)",
    )
    parser.add_argument(
        "--print-html",
        default=None,
        help="Also write a print-ready HTML page to this path",
    )
    parser.add_argument(
        "--preview",
        default=None,
        help="Also write a screen preview SVG to this path",
    )

    # Flags
    parser.add_argument(
        "--trim-marks",
        action="store_true",
        help="Draw corner trim marks in the bleed area",
    )
    parser.add_argument(
        "--no-rounded",
        action="store_true",
        help="Do not clip the sticker to rounded corners",
    )
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the scannability check with the logo area covered",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite output files without prompting",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Lazy imports for faster --help
    from peakbook_qr.config import DEFAULT_CONFIG, get_filename
    from peakbook_qr.export import create_preview_svg, generate_print_html, save_svg
    from peakbook_qr.image_utils import VerifyResult, verify_qr_scannable
    from peakbook_qr.service import generate_qr_code, generate_random_token
    from peakbook_qr.svg_builder import StickerOptions, compute_layout, module_size_for, wrap_caption
    from peakbook_qr.validator import check_scannability

    print(f"Peakbook QR Sticker Generator v{__version__}")
    print("=" * 50)

    token = generate_random_token() if args.random_token else args.token
    ecc_level = args.ecc or DEFAULT_CONFIG.qr.error_correction

    if args.output.lower().endswith(".svg"):
        output_dir = os.path.dirname(args.output) or "."
        filename = os.path.basename(args.output)
    else:
        output_dir = args.output
        filename = get_filename(token)

    # ------------------------------------------------------------------
    # Check output overwrite
    # ------------------------------------------------------------------
    target = os.path.join(output_dir, filename.lower())
    if os.path.exists(target) and not args.overwrite:
        response = input(f"  Output file '{target}' already exists. Overwrite? [y/N] ")
        if response.lower() not in ("y", "yes"):
            print("  Aborted.")
            return 0

    # Step 1: Generate sticker
    print(f"\n[1/3] Generating sticker for token: {token}")
    options = StickerOptions(include_trim_marks=args.trim_marks, rounded=not args.no_rounded)
    result = generate_qr_code(
        {"token": token, "caption": args.caption, "param_name": args.param, "ecc_level": ecc_level},
        logo_ref=args.logo,
        options=options,
    )

    if not result["success"]:
        print(f"\n  ERROR: {result['error']}", file=sys.stderr)
        for field_name, message in result.get("errors", {}).items():
            print(f"    {field_name}: {message}", file=sys.stderr)
        return 1

    data = result["data"]
    print(f"  ✓ Scan URL:  {data['url']}")
    print(f"  ✓ ECC level: {ecc_level}")
    for flag in data["degraded"]:
        print(f"  ⚠️  Degraded output: {flag.replace('_', ' ')}", file=sys.stderr)

    report = check_scannability(data["url"], ecc_level)
    if report.warning:
        print(f"  ⚠️  {report.warning}", file=sys.stderr)

    # Step 2: Save outputs
    print(f"\n[2/3] Saving output to: {output_dir}")
    try:
        path = save_svg(data["svg"], filename, output_dir, overwrite=True)
        print(f"  ✓ Saved: {path}")

        if args.print_html:
            with open(args.print_html, "w", encoding="utf-8") as f:
                f.write(generate_print_html(data["svg"], token))
            print(f"  ✓ Print sheet: {args.print_html}")

        if args.preview:
            with open(args.preview, "w", encoding="utf-8") as f:
                f.write(create_preview_svg(data["svg"]))
            print(f"  ✓ Preview: {args.preview}")
    except (OSError, ValueError) as e:
        print(f"\n  ERROR: {e}", file=sys.stderr)
        return 1

    # Step 3: Verify
    if args.no_verify:
        print("\n[3/3] Verification skipped")
    else:
        print("\n[3/3] Verifying QR code scannability with logo area covered...")
        layout = compute_layout(DEFAULT_CONFIG, wrap_caption(args.caption), module_size_for(None))
        verdict, decoded = verify_qr_scannable(data["url"], ecc_level, layout.logo_coverage)
        if verdict == VerifyResult.SCANNABLE:
            print(f"  ✓ QR code is SCANNABLE! Decoded: {decoded}")
        elif verdict == VerifyResult.SKIPPED:
            print("  ⊘ Verification skipped (pyzbar not installed)")
            print("    Install with: pip install pyzbar")
        else:
            print("  ⚠️  WARNING: QR code may not be scannable.")
            print("     Try a higher error correction level (--ecc H) or a shorter caption")

    print(f"\n✅ Done! Your sticker is at: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
