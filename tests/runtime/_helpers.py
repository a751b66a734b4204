"""runtime/api テスト用の小物（手動で進める時計、テンプレート生成）。"""

from __future__ import annotations

from engine.compiler import compile_template
from engine.core.template import Template


class ManualClock:
    """`t` を書き換えて時間を進める偽の時計。"""

    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


def compiled(source: str) -> Template:
    result = compile_template(source)
    assert result.error is None, result.error
    assert result.template is not None
    return result.template
