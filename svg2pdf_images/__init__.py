"""Image resource decoding for an SVG-to-PDF renderer.

Resolves ``<image>`` references (inline ``data:`` URIs or external files),
decodes PNG and JPEG data, and normalizes every image into one canonical
layout: 4 bytes per pixel, blue-green-red-alpha, premultiplied alpha,
top row first.

Key features:
- Lenient base64 decoding of inline payloads
- PNG decoding of every color type and bit depth, including tRNS
  transparency and Adam7 interlacing
- JPEG decoding (grayscale and color) via Pillow
- Format sniffing with PNG -> JPEG fallback, mime hints tried first
- Lazy, decode-once image nodes with a pymupdf PDF render engine

Note: Imports are deferred so that importing the package does not pull in
Pillow or pymupdf.  Use explicit imports from submodules (e.g.,
``from svg2pdf_images.resolver import ...``) or access via this package.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("svg2pdf-images")
except PackageNotFoundError:
    __version__ = "0.0.0"  # fallback for uninstalled dev usage


def __getattr__(name: str):
    """Lazy imports to avoid loading codecs at package import time."""
    _lazy_imports = {
        # svg2pdf_images.errors
        "Status": "svg2pdf_images.errors",
        "ImageError": "svg2pdf_images.errors",
        "ImageNotFoundError": "svg2pdf_images.errors",
        "ImageMemoryError": "svg2pdf_images.errors",
        "ImageParseError": "svg2pdf_images.errors",
        "ImageConfigError": "svg2pdf_images.errors",
        # svg2pdf_images.encoding
        "decode_base64": "svg2pdf_images.encoding",
        # svg2pdf_images.pixels
        "DecodedImage": "svg2pdf_images.pixels",
        "DecodeOptions": "svg2pdf_images.pixels",
        # svg2pdf_images.dispatch
        "FormatDispatcher": "svg2pdf_images.dispatch",
        # svg2pdf_images.png_decoder / jpeg_decoder
        "PngDecoder": "svg2pdf_images.png_decoder",
        "JpegDecoder": "svg2pdf_images.jpeg_decoder",
        # svg2pdf_images.resolver
        "ImageResourceResolver": "svg2pdf_images.resolver",
        "LocalFileResolver": "svg2pdf_images.resolver",
        # svg2pdf_images.length
        "Length": "svg2pdf_images.length",
        "LengthUnit": "svg2pdf_images.length",
        "Orientation": "svg2pdf_images.length",
        # svg2pdf_images.node
        "ImageNode": "svg2pdf_images.node",
        "NodeState": "svg2pdf_images.node",
        # svg2pdf_images.pdf_engine
        "PdfRenderEngine": "svg2pdf_images.pdf_engine",
        "render_nodes_to_pdf": "svg2pdf_images.pdf_engine",
    }

    if name in _lazy_imports:
        import importlib
        module = importlib.import_module(_lazy_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'svg2pdf_images' has no attribute {name!r}")


__all__ = [
    "decode_base64",
    "DecodedImage",
    "DecodeOptions",
    "FormatDispatcher",
    "ImageConfigError",
    "ImageError",
    "ImageMemoryError",
    "ImageNode",
    "ImageNotFoundError",
    "ImageParseError",
    "ImageResourceResolver",
    "JpegDecoder",
    "Length",
    "LengthUnit",
    "LocalFileResolver",
    "NodeState",
    "Orientation",
    "PdfRenderEngine",
    "PngDecoder",
    "render_nodes_to_pdf",
    "Status",
]
