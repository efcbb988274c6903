"""
Tests for editor settings and themes.
"""

import pytest

from arch_canvas.config import EditorSettings, load_settings
from arch_canvas.themes import DARK_THEME, LIGHT_THEME, get_theme
from arch_canvas.visual import ACTOR_NODE, CONTAINER_NODE, SYSTEM_NODE


class TestDefaults:

    def test_defaults(self):
        settings = EditorSettings()
        assert settings.save_debounce == 0.5
        assert settings.layout_timeout == 5.0
        assert settings.handle_side_limit == 3
        assert settings.fallback_grid.columns == 4
        assert settings.container.header_height == 32

    def test_node_sizes_by_visual_kind(self):
        sizes = EditorSettings().node_sizes
        assert sizes.for_visual_kind(ACTOR_NODE).width == 120
        assert sizes.for_visual_kind(CONTAINER_NODE).height == 200
        assert sizes.for_visual_kind(SYSTEM_NODE).width == 200

    def test_layout_options_per_diagram(self):
        settings = EditorSettings()
        assert settings.layout_options("logical").direction == "RIGHT"
        assert settings.layout_options("context").direction == "DOWN"
        assert settings.layout_options("unknown").node_spacing == 40


class TestLoadSettings:

    def test_no_sources(self):
        assert load_settings(environ={}) == EditorSettings()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "arch-canvas.yaml"
        path.write_text(
            "theme: light\n"
            "layout_timeout: 2.5\n"
            "layout:\n"
            "  logical:\n"
            "    node_spacing: 90\n",
            encoding="utf-8",
        )
        settings = load_settings(path, environ={})
        assert settings.theme == "light"
        assert settings.layout_timeout == 2.5
        assert settings.layout["logical"].node_spacing == 90
        # Unmentioned options keep their defaults
        assert settings.layout["logical"].direction == "RIGHT"
        assert settings.layout["context"].node_spacing == 80

    def test_environment_wins(self, tmp_path):
        path = tmp_path / "arch-canvas.yaml"
        path.write_text("save_debounce: 1.0\n", encoding="utf-8")
        env = {"ARCH_CANVAS_CONFIG": str(path), "ARCH_CANVAS_SAVE_DEBOUNCE": "0.25"}
        assert load_settings(environ=env).save_debounce == 0.25

    def test_file_must_hold_mapping(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(path, environ={})

    def test_palette_follows_theme(self):
        assert EditorSettings(theme="light").palette() == LIGHT_THEME


class TestThemes:

    def test_lookup(self):
        assert get_theme("dark") is DARK_THEME

    def test_unknown_theme(self):
        with pytest.raises(ValueError):
            get_theme("solarized")
