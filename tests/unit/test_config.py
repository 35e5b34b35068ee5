import pytest

from wayfinder.core.config import WayfinderConfig
from wayfinder.utils.screenshot import compare_screenshots, save_to_file, take_base64


def test_defaults():
    config = WayfinderConfig()

    assert config.readiness.grace_ms == 1000
    assert config.readiness.absolute_fallback_ms == 8000
    assert config.session.navigation_timeout_ms == 10000
    assert config.session.auto_refresh is True
    assert config.dom.include_hidden_elements is False
    assert config.browser.page_load_strategy == "eager"


def test_round_trip_through_dict():
    config = WayfinderConfig()
    config.readiness.grace_ms = 250
    config.browser.extra_args.append("--lang=de")

    restored = WayfinderConfig.from_dict(config.to_dict())

    assert restored == config


def test_partial_dict_keeps_other_defaults():
    config = WayfinderConfig.from_dict({"monitor": {"refresh_wait_ms": 50}})

    assert config.monitor.refresh_wait_ms == 50
    assert config.monitor.settle_delay_ms == 200
    assert config.readiness.grace_ms == 1000


def test_unknown_section_rejected():
    with pytest.raises(ValueError, match="Unknown config section"):
        WayfinderConfig.from_dict({"proxy": {}})


def test_unknown_key_rejected():
    with pytest.raises(ValueError, match="grace"):
        WayfinderConfig.from_dict({"readiness": {"grace": 10}})


def test_screenshot_helpers(tmp_path):
    path = save_to_file(b"abc", tmp_path / "nested" / "shot.png")

    assert path.read_bytes() == b"abc"
    assert take_base64(b"abc") == "YWJj"
    assert compare_screenshots(b"abcd", b"abcd") == 1.0
    assert compare_screenshots(b"abcd", b"abcx") == 0.75
    assert compare_screenshots(b"abc", b"abcd") == 0.0
