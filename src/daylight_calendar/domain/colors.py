from __future__ import annotations

LIGHT_TEXT = "#ffffff"
DARK_TEXT = "#0f172a"
DEFAULT_EVENT_COLOR = "#2563eb"


def _hex_to_rgb(color: str) -> tuple[int, int, int] | None:
    normalized = color.strip().lstrip("#")
    if len(normalized) == 3:
        normalized = "".join(channel * 2 for channel in normalized)
    if len(normalized) != 6:
        return None
    try:
        value = int(normalized, 16)
    except ValueError:
        return None
    return (value >> 16) & 255, (value >> 8) & 255, value & 255


def text_color_for_background(color: str | None) -> str:
    if not color:
        return LIGHT_TEXT
    rgb = _hex_to_rgb(color)
    if rgb is None:
        return LIGHT_TEXT
    red, green, blue = rgb
    luminance = (0.299 * red + 0.587 * green + 0.114 * blue) / 255
    return DARK_TEXT if luminance > 0.6 else LIGHT_TEXT
