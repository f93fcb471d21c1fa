"""CLI entry point for svg2pdf-images.

Decode image references the way the renderer does and optionally place
the result on a PDF page.

Usage::

    svg2pdf-images decode photo.jpg
    svg2pdf-images decode "data:image/png;base64,iVBORw0KGgo..." --dump out.bgra
    svg2pdf-images render logo.png -o logo.pdf --width 50mm --height 20mm
"""

import argparse
import logging
import sys
from pathlib import Path

import colorlog

from svg2pdf_images import __version__
from svg2pdf_images.errors import ImageError
from svg2pdf_images.node import ImageNode
from svg2pdf_images.pdf_engine import DEFAULT_PAGE_SIZE, render_nodes_to_pdf
from svg2pdf_images.pixels import DEFAULT_MAX_PIXELS, DecodeOptions
from svg2pdf_images.resolver import ImageResourceResolver, LocalFileResolver

_log = logging.getLogger("svg2pdf")


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_colorized_logging():
    """Configure colorized logging output."""
    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)-9s%(reset)s: "
            "%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    # Suppress noisy libraries
    logging.getLogger("PIL").setLevel(logging.WARNING)


def _setup_logging(verbose: bool) -> None:
    """Initialize colorized logging and optionally enable debug level."""
    setup_colorized_logging()
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _page_size(text: str) -> tuple[float, float]:
    """Parse ``WIDTHxHEIGHT`` in points."""
    try:
        w, h = (float(v) for v in text.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected WIDTHxHEIGHT in points, got {text!r}"
        ) from None
    if w <= 0 or h <= 0:
        raise argparse.ArgumentTypeError("page size must be positive")
    return w, h


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    common_parent = argparse.ArgumentParser(add_help=False)
    common_parent.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    common_parent.add_argument(
        "reference",
        help="Image reference: a file path, file: URL or "
             "data:<mime>;base64,<payload> URI",
    )
    common_parent.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Directory relative file references are resolved against "
             "(default: current directory)",
    )
    common_parent.add_argument(
        "--max-pixels",
        type=int,
        default=DEFAULT_MAX_PIXELS,
        metavar="N",
        help="Refuse images with more than N pixels (default: %(default)s)",
    )

    parser = argparse.ArgumentParser(
        prog="svg2pdf-images",
        description="Decode PNG/JPEG image references into premultiplied "
                    "BGRA pixels and place them on PDF pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  decode        Decode a reference and report its pixel size
  render        Place a decoded reference on a one-page PDF

Run '%(prog)s COMMAND --help' for command-specific options.
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # -- decode ----------------------------------------------------------------
    p_decode = subparsers.add_parser(
        "decode",
        parents=[common_parent],
        help="Decode a reference and report its pixel size",
        description="Decode an image reference into the canonical BGRA layout.",
    )
    p_decode.add_argument(
        "--dump",
        type=Path,
        default=None,
        metavar="FILE",
        help="Write the raw premultiplied BGRA buffer to FILE",
    )

    # -- render ----------------------------------------------------------------
    p_render = subparsers.add_parser(
        "render",
        parents=[common_parent],
        help="Place a decoded reference on a one-page PDF",
        description="Render an image element onto a new one-page PDF.",
    )
    p_render.add_argument(
        "-o", "--output",
        type=Path,
        required=True,
        help="Output PDF path",
    )
    for name, default in (("x", "0"), ("y", "0"), ("width", "100%"), ("height", "100%")):
        p_render.add_argument(
            f"--{name}",
            default=default,
            metavar="LENGTH",
            help=f"Element {name} attribute (default: %(default)s)",
        )
    p_render.add_argument(
        "--page-size",
        type=_page_size,
        default=DEFAULT_PAGE_SIZE,
        metavar="WxH",
        help="Page size in points (default: A4, 595x842)",
    )

    return parser


def _make_resolver(args: argparse.Namespace) -> ImageResourceResolver:
    return ImageResourceResolver(
        LocalFileResolver(args.base_dir),
        options=DecodeOptions(max_pixels=args.max_pixels),
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_decode(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose)
    try:
        image = _make_resolver(args).load(args.reference)
    except ImageError as e:
        _log.error("Decode failed (%s): %s", e.status.value, e)
        return 1

    print(f"{image.width}x{image.height} BGRA, {len(image.pixels)} bytes")
    if args.dump is not None:
        args.dump.write_bytes(image.pixels)
        _log.info("  Wrote %s", args.dump)
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose)
    node = ImageNode()
    try:
        node.apply_attributes({
            "x": args.x,
            "y": args.y,
            "width": args.width,
            "height": args.height,
            "xlink:href": args.reference,
        })
        render_nodes_to_pdf([node], args.output, _make_resolver(args), args.page_size)
    except ImageError as e:
        _log.error("Render failed (%s): %s", e.status.value, e)
        return 1
    return 0


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> int:
    """Main entry point."""
    parser = _build_parser()

    # Show help if no arguments provided.
    if len(sys.argv) == 1:
        parser.print_help()
        return 0

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    handlers = {
        "decode": _cmd_decode,
        "render": _cmd_render,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
