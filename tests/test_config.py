# tests/test_config.py
import os
import pytest
from config import QUALITY_LEVELS, RENDER_SETTINGS, apply_quality, load_settings
import main

def test_defaults_are_copied():
    settings = load_settings()
    settings['width'] = 1
    assert RENDER_SETTINGS['width'] != 1

def test_overrides_and_unknown_keys():
    assert load_settings(use_bvh=False)['use_bvh'] is False
    with pytest.raises(ValueError):
        load_settings(bounces=3)
    with pytest.raises(ValueError):
        load_settings(max_depth=0)

def test_quality_presets():
    base = load_settings(width=400, height=200)
    for name, level in QUALITY_LEVELS.items():
        settings = apply_quality(base, name)
        assert settings['max_depth'] == level['max_depth']
        assert settings['width'] == int(400 * level['scale'])
    with pytest.raises(ValueError):
        apply_quality(base, "ultra")

def test_command_line_flags():
    args = main.parse_args(["--width", "32", "--height", "16", "--depth", "3", "--brute-force",
                            "--sort-materials", "--no-jitter", "--headless"])
    settings = main.settings_from_args(args)
    assert (settings['width'], settings['height'], settings['max_depth']) == (32, 16, 3)
    assert settings['use_bvh'] is False
    assert settings['sort_by_material'] is True
    assert settings['antialias'] is False

def test_quality_flag_keeps_explicit_depth():
    args = main.parse_args(["--quality", "interactive", "--depth", "6"])
    assert main.settings_from_args(args)['max_depth'] == 6

def test_invalid_settings_exit_with_usage_error():
    assert main.main(["--depth", "0", "--headless"]) == 2

def test_headless_render_writes_an_image(tmp_path, monkeypatch):
    monkeypatch.setenv("SDL_VIDEODRIVER", "dummy")
    output = tmp_path / "frame.png"
    code = main.main(["--width", "8", "--height", "8", "--depth", "2", "--iterations", "1",
                      "--headless", "--output", str(output)])
    assert code == 0
    assert output.exists() and os.path.getsize(output) > 0

def test_fatal_render_error_exits_with_status_one(monkeypatch):
    def fail(settings, output):
        raise main.FatalRenderError("device lost")
    monkeypatch.setattr(main, "render_headless", fail)
    assert main.main(["--headless"]) == 1
