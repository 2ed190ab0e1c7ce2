"""
Document Normalizer: turn a receipt image or PDF into one base64 image.

Images pass through unchanged. PDFs are rasterised with PyMuPDF: only the
first page is rendered (2x scale, PNG). Later pages are dropped, and that is
reported on the result rather than treated as an error.
"""

import asyncio
import base64
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from receipt_ledger.errors import DocumentRenderError, UnsupportedFormatError

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
RENDERED_MIME_TYPE = "image/png"
PDF_RENDER_SCALE = 2.0

Source = Union[str, Path, bytes]


@dataclass
class NormalizedDocument:
    """Image payload ready to send to the provider."""

    data: str  # base64, no data: URL prefix
    mime_type: str
    page_count: int = 1
    truncated: bool = False  # True when PDF pages after the first were dropped


def guess_mime_type(path: Union[str, Path]) -> Optional[str]:
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type


def _is_supported(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and (mime_type.startswith("image/") or mime_type == PDF_MIME_TYPE)


def _read_source(source: Source) -> bytes:
    if isinstance(source, bytes):
        return source
    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_bytes()


def render_pdf_first_page(pdf_bytes: bytes, scale: float = PDF_RENDER_SCALE):
    """
    Render page 1 of a PDF to PNG bytes.

    Returns:
        (png_bytes, page_count)
    """
    import fitz  # pymupdf

    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise DocumentRenderError(str(e)) from e

    try:
        page_count = doc.page_count
        if page_count < 1:
            raise DocumentRenderError("document has no pages")
        pix = doc[0].get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return pix.tobytes("png"), page_count
    except DocumentRenderError:
        raise
    except Exception as e:
        raise DocumentRenderError(str(e)) from e
    finally:
        doc.close()


class DocumentNormalizer:
    """Normalise receipt files to a single base64-encoded image."""

    def __init__(self, render_scale: float = PDF_RENDER_SCALE):
        self.render_scale = render_scale

    def normalize(self, source: Source, mime_type: Optional[str] = None) -> NormalizedDocument:
        """
        Normalise a receipt file.

        Args:
            source: File path or raw bytes
            mime_type: Declared MIME type; guessed from the path when omitted

        Returns:
            NormalizedDocument with base64 image data and its MIME type
        """
        if mime_type is None and not isinstance(source, bytes):
            mime_type = guess_mime_type(source)

        if not _is_supported(mime_type):
            raise UnsupportedFormatError(mime_type)

        raw = _read_source(source)

        if mime_type != PDF_MIME_TYPE:
            return NormalizedDocument(
                data=base64.b64encode(raw).decode("utf-8"),
                mime_type=mime_type,
            )

        png_bytes, page_count = render_pdf_first_page(raw, self.render_scale)
        truncated = page_count > 1
        if truncated:
            logger.warning(f"PDF has {page_count} pages; only page 1 is extracted")
        else:
            logger.debug("Rendered single-page PDF to PNG")

        return NormalizedDocument(
            data=base64.b64encode(png_bytes).decode("utf-8"),
            mime_type=RENDERED_MIME_TYPE,
            page_count=page_count,
            truncated=truncated,
        )

    async def normalize_async(
        self, source: Source, mime_type: Optional[str] = None
    ) -> NormalizedDocument:
        """Run normalize() in a worker thread (PDF rendering is CPU bound)."""
        return await asyncio.to_thread(self.normalize, source, mime_type)
