import pytest

from signfast.compositor.geometry import (
    Rect, SignatureAnchor, fit_image, text_font_size, text_origin, to_page_rect,
)

PAGE_W, PAGE_H = 612.0, 792.0


def test_region_is_flipped_into_page_space():
    rect = to_page_rect(72, 100, 200, 50, PAGE_W, PAGE_H)
    assert rect == Rect(72, PAGE_H - 100 - 50, 200, 50)


def test_region_past_the_edge_is_clamped_onto_the_page():
    rect = to_page_rect(600, 780, 100, 40, PAGE_W, PAGE_H)
    assert rect.x == PAGE_W - 100
    assert rect.y == 0


def test_region_larger_than_page_starts_at_origin():
    rect = to_page_rect(50, 50, 1000, 1000, PAGE_W, PAGE_H)
    assert (rect.x, rect.y) == (0, 0)
    assert (rect.width, rect.height) == (1000, 1000)


def test_wide_image_is_bound_by_width():
    target = fit_image(Rect(0, 0, 210, 110), 400, 100)
    assert target.width == pytest.approx(200)
    assert target.height == pytest.approx(50)
    assert (target.x, target.y) == (5, 5)


def test_tall_image_is_bound_by_height():
    target = fit_image(Rect(0, 0, 210, 110), 100, 200)
    assert target.height == pytest.approx(100)
    assert target.width == pytest.approx(50)


def test_centered_anchor_splits_the_slack():
    target = fit_image(Rect(0, 0, 210, 110), 100, 200, SignatureAnchor.CENTER)
    assert target.x == pytest.approx(5 + (200 - 50) / 2)
    assert target.y == pytest.approx(5)


def test_region_without_interior_draws_nothing():
    assert fit_image(Rect(0, 0, 10, 50), 100, 100) is None
    assert fit_image(Rect(0, 0, 100, 100), 0, 100) is None


@pytest.mark.parametrize("height, expected", [(10, 3.0), (30, 9.0), (40, 12.0), (200, 12.0)])
def test_text_font_size(height, expected):
    assert text_font_size(height) == pytest.approx(expected)


def test_text_origin_is_inset():
    assert text_origin(Rect(10, 20, 100, 30)) == (15, 25)
