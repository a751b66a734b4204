"""共通フィクスチャ。

- テンプレートソースの試料
- 設定のスナップショット/復元
- ダミーのレンダラ/エンコーダ
"""

from __future__ import annotations

from typing import Iterator

import pytest

from common import settings
from tests._utils.dummies import FakeEncoder, FakeRenderer

SIMPLE_TEMPLATE = '''
from api import define_template


def render(ctx):
    return f"<div class='frame'>{ctx.scene_frame}:{ctx.data.get('title', '')}</div>"


template = define_template(
    render=render,
    config={"width": 320, "height": 180, "fps": 10, "duration_seconds": 1},
    defaults={"title": "hello"},
)
'''

PRESET_TEMPLATE = '''
from api import define_template

template = define_template(
    render=lambda ctx: f"<p>{ctx.output.name} {ctx.width}x{ctx.height}</p>",
    config={
        "width": 640,
        "height": 360,
        "fps": 10,
        "durationSeconds": 0.5,
        "fonts": ["TemplateFont"],
        "outputs": {
            "story": {"width": 360, "height": 640},
            "square": {"width": 400, "height": 400, "fps": 5},
        },
    },
)
'''


@pytest.fixture()
def simple_source() -> str:
    return SIMPLE_TEMPLATE


@pytest.fixture()
def preset_source() -> str:
    return PRESET_TEMPLATE


@pytest.fixture()
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture()
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture()
def restore_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    """環境変数を書き換えたテストの後で設定を読み直す。"""
    yield monkeypatch
    monkeypatch.undo()
    settings.reload_from_env()
