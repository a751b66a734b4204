from __future__ import annotations

import pytest

from common.base_registry import BaseRegistry


def test_register_and_get_with_normalization() -> None:
    reg = BaseRegistry("renderer")

    @reg.register(None)
    class HeadlessThing:  # noqa: N801 (テスト用)
        pass

    assert reg.is_registered("headless_thing")
    assert reg.get("HeadlessThing") is HeadlessThing
    assert "headless_thing" in reg.list_all()


def test_duplicate_and_unregister() -> None:
    reg = BaseRegistry()

    @reg.register(None)
    def sample():  # noqa: ANN001 - テスト用
        return 1

    with pytest.raises(ValueError):
        reg.register("sample")(lambda: 2)

    reg.unregister("Sample")
    assert not reg.is_registered("sample")


def test_unknown_name_lists_available() -> None:
    reg = BaseRegistry("encoder")
    reg.register("ffmpeg")(object)
    with pytest.raises(KeyError) as ei:
        reg.get("gstreamer")
    assert "ffmpeg" in str(ei.value)
    assert "encoder" in str(ei.value)


def test_create_calls_factory_with_kwargs() -> None:
    reg = BaseRegistry()

    @reg.register("pair")
    def make_pair(a: int = 0, b: int = 0) -> tuple[int, int]:
        return (a, b)

    assert reg.create("pair", a=1, b=2) == (1, 2)


def test_key_normalization_hyphen_to_snake() -> None:
    reg = BaseRegistry()

    @reg.register("Headless-Chrome")
    def fn():  # noqa: ANN001 - テスト用
        return 1

    assert reg.is_registered("headless_chrome")
    reg.clear()
    assert reg.registry == {}


@pytest.mark.parametrize(
    ("name", "key"),
    [
        ("Headless-Chrome", "headless_chrome"),
        ("FFmpeg-Encoder", "f_fmpeg_encoder"),
        ("FFMPEG", "ffmpeg"),
        ("web-m__writer", "web_m_writer"),
        ("PlaywrightRenderer", "playwright_renderer"),
    ],
)
def test_normalized_keys_have_single_separators(name: str, key: str) -> None:
    reg = BaseRegistry()
    reg.register(name)(object)
    assert reg.list_all() == [key]
    assert reg.get(name) is object
