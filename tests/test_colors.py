from __future__ import annotations

import pytest

from daylight_calendar.domain.colors import DARK_TEXT, LIGHT_TEXT, text_color_for_background


@pytest.mark.parametrize(
    ("background", "expected"),
    [
        ("#ffffff", DARK_TEXT),
        ("#fff", DARK_TEXT),
        ("fbbf24", DARK_TEXT),
        ("#2563eb", LIGHT_TEXT),
        ("#000", LIGHT_TEXT),
        ("#12345", LIGHT_TEXT),
        ("#gggggg", LIGHT_TEXT),
        ("", LIGHT_TEXT),
        (None, LIGHT_TEXT),
    ],
)
def test_text_color_for_background(background, expected):
    assert text_color_for_background(background) == expected
