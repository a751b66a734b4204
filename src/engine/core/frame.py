"""
どこで: `engine.core.frame`。
何を: 1 フレームのマークアップ生成（例外をフレーム文脈付きでラップ）と、エラー用データ抜粋の切り詰め。
なぜ: エクスポート/プレビュー/検証で同じ失敗表現（TemplateRuntimeError）を使うため。
"""

from __future__ import annotations

from typing import Any, Mapping

from common import settings
from common.errors import TemplateRuntimeError

from .context import RenderContext
from .template import Template

_MAX_LIST_ITEMS = 5
_KEEP_LIST_ITEMS = 3
_MAX_KEYS = 10


def truncate_for_error(value: Any, depth: int | None = None) -> Any:
    """エラー報告用にデータを小さく切り詰める。

    - 深さ `depth`（既定は設定値 2）を超える dict は "{...}"、list は "[...]"。
    - 要素 5 超の list は先頭 3 件 + "... N more"。
    - キー 10 超の dict は先頭 10 件 + {"...": "N more keys"}。
    """
    max_depth = settings.get().ERROR_SNAPSHOT_DEPTH if depth is None else depth
    return _truncate(value, 0, max_depth)


def _truncate(value: Any, level: int, max_depth: int) -> Any:
    if isinstance(value, (str, bytes, int, float, bool)) or value is None:
        return value
    if isinstance(value, Mapping):
        if level >= max_depth:
            return "{...}"
        keys = list(value.keys())
        out: dict[str, Any] = {}
        for k in keys[:_MAX_KEYS]:
            out[str(k)] = _truncate(value[k], level + 1, max_depth)
        if len(keys) > _MAX_KEYS:
            out["..."] = f"{len(keys) - _MAX_KEYS} more keys"
        return out
    if isinstance(value, (list, tuple)):
        if level >= max_depth:
            return "[...]"
        if len(value) > _MAX_LIST_ITEMS:
            head = [_truncate(v, level + 1, max_depth) for v in value[:_KEEP_LIST_ITEMS]]
            return head + [f"... {len(value) - _KEEP_LIST_ITEMS} more"]
        return [_truncate(v, level + 1, max_depth) for v in value]
    return repr(value)


def render_frame_markup(template: Template, ctx: RenderContext) -> str:
    """`template.render(ctx)` を呼び、失敗を `TemplateRuntimeError` にする。

    文字列以外の戻り値も同じ扱い（TypeError を原因としてラップ）。
    """
    try:
        markup = template.render(ctx)
    except Exception as exc:
        raise _runtime_error(ctx, exc) from exc
    if not isinstance(markup, str):
        exc = TypeError(f"render() must return a string, got {type(markup).__name__}")
        raise _runtime_error(ctx, exc)
    return markup


def _runtime_error(ctx: RenderContext, exc: BaseException) -> TemplateRuntimeError:
    return TemplateRuntimeError(
        ctx.scene_frame,
        ctx.time_context().as_dict(),
        exc,
        data_snapshot=truncate_for_error(ctx.data),
    )


__all__ = ["render_frame_markup", "truncate_for_error"]
