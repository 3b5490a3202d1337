import base64
import struct
import zlib
from io import BytesIO
from types import SimpleNamespace

import pytest
from pypdf import PdfReader

from signfast.compositor import Placement, RenderException, SignatureAnchor, render_document
from signfast.compositor.renderer import MAX_SIGNATURE_PIXELS, decode_image, placement_value


def region(region_id, region_type="signature", page_number=1, **geometry):
    fields = dict(x=72, y=100, width=200, height=60)
    fields.update(geometry)
    return SimpleNamespace(id=region_id, type=region_type, page_number=page_number, **fields)


def page_text(pdf: bytes, index: int) -> str:
    return PdfReader(BytesIO(pdf)).pages[index].extract_text() or ""


def test_render_keeps_every_page(pdf_bytes, signature_png):
    placements = [
        Placement(region(1), signature_png),
        Placement(region(2, "name", page_number=2, height=30), "Jane Signer"),
    ]
    rendered = render_document(pdf_bytes, placements)

    assert rendered.startswith(b"%PDF-")
    assert len(PdfReader(BytesIO(rendered)).pages) == 2
    assert "Jane Signer" in page_text(rendered, 1)
    assert "Jane Signer" not in page_text(rendered, 0)


def test_source_bytes_are_not_modified(pdf_bytes):
    before = bytes(pdf_bytes)
    render_document(pdf_bytes, [Placement(region(1, "date"), "2026-10-19")])
    assert pdf_bytes == before


def test_wrapped_text_values_are_unwrapped(pdf_bytes):
    rendered = render_document(
        pdf_bytes,
        [Placement(region(1, "business"), {"type": "business", "data": "Acme Corp"})],
        SignatureAnchor.CENTER,
    )
    assert "Acme Corp" in page_text(rendered, 0)


def test_regions_on_missing_pages_are_skipped(pdf_bytes):
    rendered = render_document(pdf_bytes, [Placement(region(1, "name", page_number=9), "Ghost")])
    assert len(PdfReader(BytesIO(rendered)).pages) == 2
    assert "Ghost" not in page_text(rendered, 0)


def test_bad_values_and_unknown_types_are_skipped(pdf_bytes):
    placements = [
        Placement(region(1), "not-base64-at-all!!"),
        Placement(region(2, "stamp"), "whatever"),
        Placement(region(3, "name"), None),
        Placement(region(4, "name"), "   "),
        Placement(region(5, "name", y=300), "Still Drawn"),
    ]
    rendered = render_document(pdf_bytes, placements)
    assert "Still Drawn" in page_text(rendered, 0)


def test_unreadable_source_raises_render_exception():
    with pytest.raises(RenderException) as exc_info:
        render_document(b"", [])
    assert exc_info.value.status_code == 502


def test_placement_value():
    assert placement_value({"type": "name", "data": "Ada"}) == "Ada"
    assert placement_value({"type": "name"}) is None
    assert placement_value("") is None
    assert placement_value(42) == "42"


def test_decode_image_accepts_bare_base64(signature_png):
    bare = signature_png.split(",", 1)[1]
    image = decode_image(bare)
    assert image.size == (200, 80)
    assert image.mode == "RGBA"


def png_header(width: int, height: int) -> str:
    """A PNG that declares its dimensions but carries no pixel data."""

    def chunk(kind: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    raw = b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", b"") + chunk(b"IEND", b"")
    return "data:image/png;base64," + base64.b64encode(raw).decode()


def test_decode_image_rejects_oversized_images():
    with pytest.raises(ValueError):
        decode_image(png_header(5000, 5000))
    assert 5000 * 5000 > MAX_SIGNATURE_PIXELS


@pytest.mark.parametrize("width,height", [(5000, 5000), (20000, 10000)])
def test_oversized_signature_is_skipped_not_fatal(pdf_bytes, width, height):
    placements = [
        Placement(region(1), png_header(width, height)),
        Placement(region(2, "name", y=300), "Alice"),
    ]
    rendered = render_document(pdf_bytes, placements)
    assert "Alice" in page_text(rendered, 0)
