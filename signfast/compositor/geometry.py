# signfast/compositor/geometry.py

"""
Coordinate conversion between the top-left region space used by the editor
and PDF user space, whose origin is the bottom-left of the page.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

IMAGE_MARGIN = 5.0
TEXT_INSET = 5.0
MAX_FONT_SIZE = 12.0
FONT_HEIGHT_RATIO = 0.3


class SignatureAnchor(str, Enum):
    """Where a fitted signature image sits inside its region"""
    BOTTOM_LEFT = "bottom_left"
    CENTER = "center"


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


def to_page_rect(
    x: float, y: float, width: float, height: float,
    page_width: float, page_height: float,
) -> Rect:
    """
    Flip a top-left region into bottom-left page space and clamp it onto the page.

    When the region is larger than the page the lower bound wins, so the
    rectangle starts at 0 and overflows on the far side.
    """
    draw_y = page_height - y - height
    clamped_x = max(0.0, min(x, page_width - width))
    clamped_y = max(0.0, min(draw_y, page_height - height))
    return Rect(clamped_x, clamped_y, width, height)


def fit_image(
    rect: Rect, image_width: float, image_height: float,
    anchor: SignatureAnchor = SignatureAnchor.BOTTOM_LEFT,
) -> Optional[Rect]:
    """
    Scale an image into the rect interior preserving aspect ratio.

    Returns None when the interior or the image has no area.
    """
    available_width = rect.width - 2 * IMAGE_MARGIN
    available_height = rect.height - 2 * IMAGE_MARGIN
    if available_width <= 0 or available_height <= 0 or image_width <= 0 or image_height <= 0:
        return None

    aspect_ratio = image_width / image_height
    if aspect_ratio > available_width / available_height:
        draw_width = available_width
        draw_height = available_width / aspect_ratio
    else:
        draw_height = available_height
        draw_width = available_height * aspect_ratio

    if anchor == SignatureAnchor.CENTER:
        draw_x = rect.x + IMAGE_MARGIN + (available_width - draw_width) / 2
        draw_y = rect.y + IMAGE_MARGIN + (available_height - draw_height) / 2
    else:
        draw_x = rect.x + IMAGE_MARGIN
        draw_y = rect.y + IMAGE_MARGIN

    return Rect(draw_x, draw_y, draw_width, draw_height)


def text_font_size(region_height: float) -> float:
    return min(MAX_FONT_SIZE, region_height * FONT_HEIGHT_RATIO)


def text_origin(rect: Rect) -> tuple:
    return rect.x + TEXT_INSET, rect.y + TEXT_INSET
