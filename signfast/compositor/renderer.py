# signfast/compositor/renderer.py

"""
Stamps signer values onto a PDF.

Each touched page gets a reportlab overlay the size of its media box, which
is merged onto the page with pypdf. The source bytes are never modified: a
fresh reader is built on every call.
"""

import base64
import binascii
import re
from collections import defaultdict
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from signfast.compositor.exceptions import RenderException
from signfast.compositor.geometry import (
    Rect, SignatureAnchor, fit_image, text_font_size, text_origin, to_page_rect,
)
from signfast.regions.schemas import RegionType
from signfast.utils.logger import get_logger

logger = get_logger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/[A-Za-z0-9.+-]+;base64,")
TEXT_FONT = "Helvetica"
TEXT_TYPES = {RegionType.NAME.value, RegionType.DATE.value, RegionType.BUSINESS.value}
MAX_SIGNATURE_PIXELS = 4096 * 4096


@dataclass
class Placement:
    """A region paired with the value drawn into it. A None value draws nothing."""
    region: Any
    value: Any = None


def placement_value(value: Any) -> Optional[str]:
    """Unwrap `{"type": ..., "data": ...}` payloads into the raw value."""
    if isinstance(value, dict):
        value = value.get("data")
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def decode_image(value: str) -> Image.Image:
    """Decode a base64 image, with or without a data URL header."""
    raw = base64.b64decode(DATA_URL_PREFIX.sub("", value.strip()))
    image = Image.open(BytesIO(raw))
    if image.width * image.height > MAX_SIGNATURE_PIXELS:
        raise ValueError(f"signature image is too large ({image.width}x{image.height})")
    image.load()
    return image.convert("RGBA")


def _draw_signature(c: canvas.Canvas, rect: Rect, value: str, anchor: SignatureAnchor, region_id) -> None:
    try:
        image = decode_image(value)
    except (binascii.Error, ValueError, UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        logger.warning("Skipping undecodable signature image", region_id=region_id, error_message=str(e))
        return

    target = fit_image(rect, image.width, image.height, anchor)
    if target is None:
        logger.warning("Skipping signature region too small to draw", region_id=region_id)
        return

    c.drawImage(
        ImageReader(image), target.x, target.y,
        width=target.width, height=target.height, mask="auto",
    )


def _draw_text(c: canvas.Canvas, rect: Rect, value: str) -> None:
    x, y = text_origin(rect)
    c.setFillColorRGB(0, 0, 0)
    c.setFont(TEXT_FONT, text_font_size(rect.height))
    c.drawString(x, y, value)


def _build_overlay(
    page_width: float, page_height: float, origin_x: float, origin_y: float,
    items: List[Placement], anchor: SignatureAnchor,
) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(origin_x + page_width, origin_y + page_height))

    for placement in items:
        region = placement.region
        value = placement_value(placement.value)
        if value is None:
            continue

        rect = to_page_rect(
            float(region.x), float(region.y), float(region.width), float(region.height),
            page_width, page_height,
        )
        rect = Rect(rect.x + origin_x, rect.y + origin_y, rect.width, rect.height)

        region_type = getattr(region.type, "value", region.type)
        region_id = getattr(region, "id", None)
        if region_type == RegionType.SIGNATURE.value:
            _draw_signature(c, rect, value, anchor, region_id)
        elif region_type in TEXT_TYPES:
            _draw_text(c, rect, value)
        else:
            logger.warning("Skipping region of unknown type", region_id=region_id, region_type=region_type)

    c.save()
    return buf.getvalue()


def render_document(
    original: bytes,
    placements: Sequence[Placement],
    anchor: SignatureAnchor = SignatureAnchor.BOTTOM_LEFT,
) -> bytes:
    """
    Render placements onto a copy of `original` and return the new PDF bytes.

    Regions on pages that do not exist are skipped with a warning. Untouched
    pages are copied as they are.
    """
    try:
        reader = PdfReader(BytesIO(original))
        page_count = len(reader.pages)
    except (PyPdfError, ValueError, OSError) as e:
        raise RenderException(f"unreadable source document ({e})") from e

    by_page: Dict[int, List[Placement]] = defaultdict(list)
    for placement in placements:
        page_number = getattr(placement.region, "page_number", None) or 1
        if not 1 <= page_number <= page_count:
            logger.warning(
                "Skipping region on missing page",
                region_id=getattr(placement.region, "id", None),
                page_number=page_number,
                page_count=page_count,
            )
            continue
        by_page[page_number - 1].append(placement)

    writer = PdfWriter()
    try:
        for index, page in enumerate(reader.pages):
            items = by_page.get(index)
            if items:
                box = page.mediabox
                overlay = _build_overlay(
                    float(box.width), float(box.height), float(box.left), float(box.bottom),
                    items, anchor,
                )
                page.merge_page(PdfReader(BytesIO(overlay)).pages[0])
            writer.add_page(page)

        out = BytesIO()
        writer.write(out)
    except (PyPdfError, ValueError, OSError) as e:
        raise RenderException(str(e)) from e

    logger.debug("Rendered document", placements=len(placements), pages=page_count)
    return out.getvalue()
