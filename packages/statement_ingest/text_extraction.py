"""Reading-order text reconstruction for text-based PDF statements.

Positioned text extraction does not preserve row order: a statement that lays
out date, description and amount as separate text runs comes back as
interleaved columns. Pages are therefore rebuilt from positioned fragments
before any pattern matching happens.

Public surface:
- :func:`reconstruct_page_text`: pure reordering of one page's fragments.
- :func:`join_pages`: page texts to one document blob.
- :func:`read_pdf_fragments`: pdfplumber adapter producing fragments.
- :func:`extract_document_text`: bytes to reading-ordered text.
"""

from __future__ import annotations

import io
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import pdfplumber

from .logging_setup import get_logger
from .models import TextFragment

# Fragments whose vertical positions differ by less than this share a line.
Y_TOLERANCE: float = 5.0

_logger = get_logger("statement_ingest.text_extraction")


class DocumentReadError(ValueError):
    """Raised when document bytes cannot be decoded into pages."""


def _visual_lines(fragments: Sequence[TextFragment]) -> list[list[TextFragment]]:
    """Group fragments into top-to-bottom bands, each ordered left-to-right.

    A band is anchored on its topmost fragment; a following fragment joins the
    band while its ``y`` is within :data:`Y_TOLERANCE` of that anchor.
    """

    by_height = sorted(fragments, key=lambda f: -f.y)
    bands: list[list[TextFragment]] = []
    anchor_y: float | None = None
    for frag in by_height:
        if anchor_y is None or abs(anchor_y - frag.y) >= Y_TOLERANCE:
            bands.append([frag])
            anchor_y = frag.y
        else:
            bands[-1].append(frag)
    # sorted() is stable, so equal x keeps the top-down order from above.
    return [sorted(band, key=lambda f: f.x) for band in bands]


def reconstruct_page_text(fragments: Iterable[TextFragment]) -> str:
    """Return one page's text in reading order.

    Fragments are emitted top-to-bottom, left-to-right within a visual line.
    Consecutive fragments are separated by a newline when the earlier one
    carries ``line_break`` and by a single space otherwise. An empty page
    yields ``""``.
    """

    ordered = [f for band in _visual_lines(list(fragments)) for f in band]
    parts: list[str] = []
    for i, frag in enumerate(ordered):
        parts.append(frag.text)
        if i < len(ordered) - 1:
            parts.append("\n" if frag.line_break else " ")
    return "".join(parts)


def join_pages(page_texts: Iterable[str]) -> str:
    return "\n".join(page_texts)


def _fragments_from_words(
    words: Sequence[Mapping[str, Any]], page_height: float
) -> list[TextFragment]:
    # pdfplumber measures ``bottom`` from the top edge; flip to PDF user space
    # so larger y means higher on the page. Line breaks compare the same edge
    # that banding uses.
    ys = [float(page_height) - float(w["bottom"]) for w in words]
    fragments: list[TextFragment] = []
    for i, word in enumerate(words):
        text = str(word.get("text") or "")
        if not text:
            continue
        ends_line = i + 1 == len(words) or abs(ys[i + 1] - ys[i]) >= Y_TOLERANCE
        fragments.append(
            TextFragment(text=text, x=float(word["x0"]), y=ys[i], line_break=ends_line)
        )
    return fragments


def read_pdf_fragments(data: bytes) -> list[list[TextFragment]]:
    """Decode PDF bytes into per-page positioned word fragments.

    Raises :class:`DocumentReadError` for empty or undecodable input. A PDF
    without a text layer (scanned images) is not an error: its pages simply
    yield no fragments.
    """

    if not data:
        raise DocumentReadError("document is empty (0 bytes)")
    pages: list[list[TextFragment]] = []
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                # Default extract_words() groups into lines then sorts by x,
                # so a change of ``top`` between neighbours ends a line.
                words = page.extract_words(keep_blank_chars=False)
                pages.append(_fragments_from_words(words, page.height))
    except Exception as e:  # noqa: BLE001 - pdfminer raises a wide variety of types
        raise DocumentReadError(f"unable to read PDF document: {e}") from e
    _logger.debug(
        "read_pdf_fragments:done pages=%d fragments=%d",
        len(pages),
        sum(len(p) for p in pages),
    )
    return pages


def extract_document_text(data: bytes) -> str:
    """Return the reading-ordered text of every page, joined by newlines."""

    return join_pages(reconstruct_page_text(page) for page in read_pdf_fragments(data))


__all__ = [
    "Y_TOLERANCE",
    "DocumentReadError",
    "reconstruct_page_text",
    "join_pages",
    "read_pdf_fragments",
    "extract_document_text",
]
