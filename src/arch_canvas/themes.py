"""
Theme definitions for arch-canvas.

Provides dark and light palettes for the diagram surface.  A palette is a
plain value: callers receive it explicitly (projection, controller) and a
theme switch means passing a different palette, not clearing a cache.

The projection copies palette colors into edge data for the rendering
layer: ``edge`` strokes every edge, ``accent`` marks both ends of a
bidirectional edge.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class ThemePalette:
    """Color palette for a theme."""

    edge: str
    accent: str


DARK_THEME = ThemePalette(
    edge="#8b949e",
    accent="#8862ff",
)


LIGHT_THEME = ThemePalette(
    edge="#656d76",
    accent="#6639ba",
)


THEMES: dict[str, ThemePalette] = {
    "dark": DARK_THEME,
    "light": LIGHT_THEME,
}


def get_theme(name: str) -> ThemePalette:
    """Get a theme palette by name.

    Raises:
        ValueError: If theme name is not recognized
    """
    if name not in THEMES:
        valid = ", ".join(THEMES.keys())
        raise ValueError(f"Unknown theme '{name}'. Valid themes: {valid}")
    return THEMES[name]
