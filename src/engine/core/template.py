"""
どこで: `engine.core.template`。
何を: テンプレート（`render(ctx) -> str` + 設定 + 既定データ）と出力プリセットの値型。
なぜ: コンパイラ・プラン・プレビューが同じ不変オブジェクトを共有できるようにするため。

Template は「正規化された時刻 → 1 フレームのマークアップ」の純関数を包む。
純粋性は強制しない（同じ ctx に同じ文字列を返すことを前提に動く）。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover - 型のみ
    from .context import RenderContext

RenderFn = Callable[["RenderContext"], str]

_NUMERIC_FIELDS = ("width", "height", "fps", "duration_seconds")
# 元の camelCase 表記も受け付ける
_KEY_ALIASES = {
    "durationSeconds": "duration_seconds",
    "inlineCss": "inline_css",
    "inlineCSS": "inline_css",
}


def positive_number(value: Any) -> Optional[float]:
    """正の有限数ならそのまま返し、それ以外（bool/0/負/NaN/非数値）は None。"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _string_tuple(value: Any, *, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence):
        items = tuple(value)
        for item in items:
            if not isinstance(item, str):
                raise TypeError(f"config.{key} must contain only strings, got {type(item).__name__}")
        return items
    raise TypeError(f"config.{key} must be a list of strings, got {type(value).__name__}")


def _normalize_keys(mapping: Mapping[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(str(k), str(k)): v for k, v in mapping.items()}


@dataclass(frozen=True)
class OutputPreset:
    """名前付き出力（例: "instagram"）の寸法/fps 上書き。未指定は基底設定を継承。"""

    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None

    @classmethod
    def from_mapping(cls, value: "OutputPreset | Mapping[str, Any]") -> "OutputPreset":
        if isinstance(value, OutputPreset):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"output preset must be a mapping, got {type(value).__name__}")
        data = _normalize_keys(value)
        width = positive_number(data.get("width"))
        height = positive_number(data.get("height"))
        return cls(
            width=int(width) if width is not None else None,
            height=int(height) if height is not None else None,
            fps=positive_number(data.get("fps")),
        )


@dataclass(frozen=True)
class TemplateConfig:
    """テンプレート側の既定レンダリング設定（全項目任意）。"""

    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    duration_seconds: Optional[float] = None
    fonts: tuple[str, ...] = ()
    inline_css: tuple[str, ...] = ()
    stylesheets: tuple[str, ...] = ()
    outputs: Mapping[str, OutputPreset] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "outputs", MappingProxyType(dict(self.outputs)))

    @classmethod
    def from_mapping(
        cls, value: "TemplateConfig | Mapping[str, Any] | None"
    ) -> "TemplateConfig":
        """dict から構築する。数値は正の値のみ採用し、それ以外は未指定扱い。

        Raises
        ------
        TypeError
            dict 以外、または fonts/outputs 等の型が不正な場合。
        """
        if value is None:
            return cls()
        if isinstance(value, TemplateConfig):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"config must be a mapping, got {type(value).__name__}")
        data = _normalize_keys(value)
        numeric = {k: positive_number(data.get(k)) for k in _NUMERIC_FIELDS}
        raw_outputs = data.get("outputs") or {}
        if not isinstance(raw_outputs, Mapping):
            raise TypeError("config.outputs must be a mapping of preset name to preset")
        return cls(
            width=int(numeric["width"]) if numeric["width"] is not None else None,
            height=int(numeric["height"]) if numeric["height"] is not None else None,
            fps=numeric["fps"],
            duration_seconds=numeric["duration_seconds"],
            fonts=_string_tuple(data.get("fonts"), key="fonts"),
            inline_css=_string_tuple(data.get("inline_css"), key="inline_css"),
            stylesheets=_string_tuple(data.get("stylesheets"), key="stylesheets"),
            outputs={str(k): OutputPreset.from_mapping(v) for k, v in raw_outputs.items()},
        )


@dataclass(frozen=True)
class Template:
    """コンパイル済みテンプレート。`defaults` は読み取り専用ビューとして保持する。"""

    render: RenderFn
    config: TemplateConfig = field(default_factory=TemplateConfig)
    defaults: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not callable(self.render):
            raise TypeError("Template.render must be callable")
        object.__setattr__(self, "config", TemplateConfig.from_mapping(self.config))
        object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults or {})))


def define_template(
    spec: Optional[Mapping[str, Any]] = None,
    *,
    render: Optional[RenderFn] = None,
    config: "TemplateConfig | Mapping[str, Any] | None" = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Template:
    """テンプレートを宣言する。

    `define_template({"render": fn, "config": {...}})` と
    `define_template(render=fn, config={...})` の両方を受け付ける（キーワードが優先）。
    """
    base = dict(spec) if spec is not None else {}
    fn = render if render is not None else base.get("render")
    if fn is None or not callable(fn):
        raise TypeError("define_template() requires a callable 'render'")
    return Template(
        render=fn,
        config=TemplateConfig.from_mapping(config if config is not None else base.get("config")),
        defaults=defaults if defaults is not None else (base.get("defaults") or {}),
    )


__all__ = [
    "OutputPreset",
    "RenderFn",
    "Template",
    "TemplateConfig",
    "define_template",
    "positive_number",
]
