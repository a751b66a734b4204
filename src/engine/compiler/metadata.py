"""
どこで: `engine.compiler.metadata`。
何を: テンプレートソースを実行せずに `ast` で走査し、エクスポートの有無とリテラル設定を取り出す。
なぜ: 信頼できないコードを評価する前に、CLI/ツールが解像度や出力プリセットを知れるようにするため。

認識する既定エクスポート（モジュールレベルの `template`）:
- `define_template(...)` / `Template(...)` 呼び出し（dict 位置引数 or キーワード）
- dict リテラル `{"render": ..., "config": {...}}`
- 関数（`def template(ctx)` / `template = render` / lambda）
- 単純な名前エイリアスの連鎖（循環は検出して打ち切る）
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import Any, Optional, Union

from common.errors import CompileError, TemplateStructureError
from engine.core.template import TemplateConfig, positive_number

DEFAULT_EXPORT = "template"
_FACTORY_NAMES = frozenset({"define_template", "Template"})
_LIST_FIELDS = ("fonts", "inline_css", "stylesheets")
_NUMERIC_FIELDS = ("width", "height", "fps", "duration_seconds")
_KEY_ALIASES = {"durationSeconds": "duration_seconds", "inlineCss": "inline_css"}
# 自己参照する dict エイリアスでも停止させる上限
_MAX_LITERAL_DEPTH = 16

_Binding = Union[ast.expr, ast.FunctionDef, ast.AsyncFunctionDef]


class _Unknown:
    """リテラルとして解決できない値の番兵。"""


_UNKNOWN = _Unknown()


@dataclass(frozen=True)
class TemplateMetadata:
    has_render_export: bool
    has_default_export: bool
    config: Optional[TemplateConfig]


def _collect_bindings(tree: ast.Module) -> dict[str, _Binding]:
    """モジュール直下の代入/関数定義を名前 → 値ノードで集める（後勝ち）。"""
    bindings: dict[str, _Binding] = {}
    for stmt in tree.body:
        if isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                if isinstance(target, ast.Name):
                    bindings[target.id] = stmt.value
        elif isinstance(stmt, ast.AnnAssign):
            if isinstance(stmt.target, ast.Name) and stmt.value is not None:
                bindings[stmt.target.id] = stmt.value
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            bindings[stmt.name] = stmt
    return bindings


def _resolve(node: _Binding, bindings: dict[str, _Binding]) -> _Binding:
    """名前エイリアスを辿って実体ノードを返す（未定義/循環ならその Name のまま）。"""
    seen: set[str] = set()
    while isinstance(node, ast.Name) and node.id in bindings and node.id not in seen:
        seen.add(node.id)
        node = bindings[node.id]
    return node


def _call_name(node: ast.Call) -> Optional[str]:
    if isinstance(node.func, ast.Name):
        return node.func.id
    if isinstance(node.func, ast.Attribute):
        return node.func.attr
    return None


def _dict_fields(
    node: _Binding, bindings: dict[str, _Binding], depth: int = 0
) -> Optional[dict[str, ast.expr]]:
    """dict リテラル / `dict(k=v)` / ファクトリ呼び出しのフィールドを返す（それ以外は None）。"""
    node = _resolve(node, bindings)
    if isinstance(node, ast.Dict):
        fields: dict[str, ast.expr] = {}
        for key, value in zip(node.keys, node.values):
            # `**spread` は key が None
            if isinstance(key, ast.Constant) and isinstance(key.value, str):
                fields[key.value] = value
        return fields
    if isinstance(node, ast.Call):
        name = _call_name(node)
        if name == "dict" or name in _FACTORY_NAMES:
            fields = {}
            if name in _FACTORY_NAMES and node.args and depth < _MAX_LITERAL_DEPTH:
                positional = _dict_fields(node.args[0], bindings, depth + 1)
                if positional is not None:
                    fields.update(positional)
            for kw in node.keywords:
                if kw.arg is not None:
                    fields[kw.arg] = kw.value
            return fields
    return None


def _literal(node: _Binding, bindings: dict[str, _Binding], depth: int = 0) -> Any:
    """ノードを Python リテラルへ（名前解決・入れ子 dict/list 対応、不明は番兵）。"""
    if depth > _MAX_LITERAL_DEPTH:
        return _UNKNOWN
    node = _resolve(node, bindings)
    fields = _dict_fields(node, bindings)
    if fields is not None:
        out = {}
        for k, v in fields.items():
            value = _literal(v, bindings, depth + 1)
            if value is not _UNKNOWN:
                out[k] = value
        return out
    if isinstance(node, (ast.List, ast.Tuple)):
        items = [_literal(v, bindings, depth + 1) for v in node.elts]
        return [v for v in items if v is not _UNKNOWN]
    if isinstance(node, ast.expr):
        try:
            return ast.literal_eval(node)
        except (ValueError, TypeError, SyntaxError, MemoryError, RecursionError):
            return _UNKNOWN
    return _UNKNOWN


def _config_from_literal(raw: Any) -> Optional[TemplateConfig]:
    """リテラル dict から型の合う項目だけを拾って TemplateConfig を作る。"""
    if not isinstance(raw, dict):
        return None
    data = {_KEY_ALIASES.get(k, k): v for k, v in raw.items()}
    cleaned: dict[str, Any] = {}
    for key in _NUMERIC_FIELDS:
        if positive_number(data.get(key)) is not None:
            cleaned[key] = data[key]
    for key in _LIST_FIELDS:
        value = data.get(key)
        if isinstance(value, str):
            cleaned[key] = [value]
        elif isinstance(value, (list, tuple)):
            cleaned[key] = [v for v in value if isinstance(v, str)]
    outputs = data.get("outputs")
    if isinstance(outputs, dict):
        cleaned["outputs"] = {
            str(name): {k: v for k, v in preset.items() if positive_number(v) is not None}
            for name, preset in outputs.items()
            if isinstance(preset, dict)
        }
    return TemplateConfig.from_mapping(cleaned)


def extract_metadata(source: str, *, filename: str = "<template>") -> TemplateMetadata:
    """テンプレートソースの静的メタデータを返す（コードは実行しない）。

    Raises
    ------
    CompileError
        構文エラー（phase="bundle"）。
    TemplateStructureError
        `template` が無い、または認識できる形でない。
    """
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise CompileError(
            f"Syntax error in template: {exc.msg} (line {exc.lineno})",
            phase="bundle",
            line=exc.lineno,
            original=exc,
        ) from exc

    bindings = _collect_bindings(tree)
    if DEFAULT_EXPORT not in bindings:
        raise TemplateStructureError(
            "No default export found: bind the template to a module-level name `template`",
            suggestion="template = define_template(render=render, config={...})",
        )

    default = _resolve(bindings[DEFAULT_EXPORT], bindings)
    default_fields: Optional[dict[str, ast.expr]] = None
    if isinstance(default, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
        default_renders = True
    else:
        default_fields = _dict_fields(default, bindings)
        if default_fields is None:
            raise TemplateStructureError(
                "Default export `template` is not a recognized template shape "
                "(expected define_template(...), a dict, or a render function)"
            )
        default_renders = "render" in default_fields

    config: Optional[TemplateConfig] = None
    if "config" in bindings:
        config = _config_from_literal(_literal(bindings["config"], bindings))
    if config is None and default_fields is not None and "config" in default_fields:
        config = _config_from_literal(_literal(default_fields["config"], bindings))

    return TemplateMetadata(
        has_render_export="render" in bindings or default_renders,
        has_default_export=True,
        config=config,
    )


__all__ = ["DEFAULT_EXPORT", "TemplateMetadata", "extract_metadata"]
