"""qrstudio CLI: encode text, style it, and export PNG or SVG."""

import argparse
import sys
from pathlib import Path

from PIL import Image

from qrstudio.errors import QRStudioError
from qrstudio.logging import audit, get_logger, setup_logging

log = get_logger("cli")


def cmd_generate(args):
    """Encode, render and save a styled QR code."""
    from qrstudio.budget import assess
    from qrstudio.config import RenderConfig
    from qrstudio.export import export_filename, export_sync, parse_format, save_export
    from qrstudio.generator import encode_matrix

    fmt = parse_format(args.format)
    logo = None
    if args.logo:
        try:
            logo = Path(args.logo).read_bytes()
        except OSError as exc:
            print(f"error: cannot read logo {args.logo}: {exc.strerror or exc}", file=sys.stderr)
            sys.exit(2)
    config = RenderConfig(
        foreground=args.fg,
        background=args.bg,
        style=args.style,
        finder_style=args.finder_style,
        ecc=args.ecc,
        logo=logo,
        logo_size=args.logo_size,
        logo_radius=args.logo_radius,
    )
    matrix = encode_matrix(args.text, config.ecc)
    data = export_sync(matrix, config, fmt, args.size)
    budget = assess(matrix, config)

    output = Path(args.output) if args.output else Path("output") / export_filename(fmt, args.size)
    save_export(data, output)
    print(f"Generated: {output} ({fmt.value}, {matrix.size}x{matrix.size} modules, {len(data)} bytes)")
    if budget is not None and not budget.safe:
        print(budget.summary(), file=sys.stderr)


def cmd_verify(args):
    """Verify a QR code image."""
    from qrstudio.verify import verify

    img = Image.open(args.image)
    results = verify(img, expected_data=args.expected)

    all_pass = True
    for r in results:
        status = "PASS" if r.success else "FAIL"
        if not r.success:
            all_pass = False
        print(f"  [{r.decoder:12s}] {status} | {r.decode_time_ms:6.1f}ms | {r.decoded_data or r.error}")

    sys.exit(0 if all_pass else 1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qrstudio", description="Styled QR code renderer and exporter")

    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- generate ---
    p_gen = subparsers.add_parser("generate", help="Generate a styled QR code")
    p_gen.add_argument("text", help="URL or text to encode")
    p_gen.add_argument("-o", "--output", default=None, help="Output file path")
    p_gen.add_argument("-f", "--format", default="png", choices=["png", "svg"], help="Export format")
    p_gen.add_argument("-s", "--size", type=int, default=800,
                       help="Raster edge in pixels (presets: 400, 800, 1200); ignored for svg")
    p_gen.add_argument("--fg", default="#000000", help="Module colour (hex e.g. '#000000')")
    p_gen.add_argument("--bg", default="#ffffff", help="Background colour (hex)")
    p_gen.add_argument("--style", default="squares", choices=["squares", "dots", "rounded"],
                       help="Module shape")
    p_gen.add_argument("--finder-style", default="square", choices=["square", "match"],
                       help="Finder patterns as solid squares, or in the module shape")
    p_gen.add_argument("-e", "--ecc", default="M", choices=["L", "M", "Q", "H"], help="Error correction level")
    p_gen.add_argument("--logo", default=None, help="Path to a logo image to place in the centre")
    p_gen.add_argument("--logo-size", type=float, default=0.20,
                       help="Logo edge as a fraction of the canvas (0.10-0.35, or a percentage)")
    p_gen.add_argument("--logo-radius", type=float, default=12.0, help="Logo plate corner radius (0-50)")

    # --- verify ---
    p_ver = subparsers.add_parser("verify", help="Verify a QR code image")
    p_ver.add_argument("image", help="Path to QR code image")
    p_ver.add_argument("--expected", default=None, help="Expected decoded data (fails if mismatch)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else "INFO"
    setup_logging(level=level, log_file=args.log_file)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "generate": cmd_generate,
        "verify": cmd_verify,
    }
    try:
        commands[args.command](args)
    except QRStudioError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(2)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
