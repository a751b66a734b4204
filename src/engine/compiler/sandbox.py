"""
どこで: `engine.compiler.sandbox`。
何を: テンプレートモジュールを評価するための新しいグローバル名前空間（制限付き builtins と import ガード）。
なぜ: テンプレート同士・ホストとの状態共有を断ち、入力を「フレームごとの ctx」だけに限定するため。

注意:
- ソースは評価前に AST で検査し、dunder 属性（`().__class__` 等）と dunder 名を拒否する。
  `getattr` / `hasattr` は builtins に含めない（文字列経由の属性アクセスを塞ぐ）。
- それでも同一プロセス内の制限でありセキュリティ境界ではない。
  信頼できないテンプレートはプロセス/コンテナ単位で隔離すること。
- import は許可リストのトップレベル名と、仮想モジュール `api`（`define_template` のみ）に限る。
"""

from __future__ import annotations

import ast
import builtins
import html
import logging
import types
from typing import Any, Iterable, Optional

from common import settings
from common.errors import CompileError
from engine.core.template import Template, TemplateConfig, define_template

logger = logging.getLogger(__name__)

SANDBOX_MODULE_NAME = "__template__"

_SAFE_BUILTIN_NAMES = (
    # 型/変換
    "bool", "bytes", "complex", "dict", "float", "frozenset", "int", "list", "object",
    "set", "slice", "str", "tuple",
    # 関数
    "abs", "all", "any", "ascii", "bin", "callable", "chr", "divmod", "enumerate",
    "filter", "format", "hash", "hex", "isinstance", "issubclass",
    "iter", "len", "map", "max", "min", "next", "oct", "ord", "pow", "range", "repr",
    "reversed", "round", "sorted", "sum", "zip",
    # クラス定義
    "__build_class__", "classmethod", "property", "staticmethod", "super",
    # 例外
    "ArithmeticError", "AssertionError", "AttributeError", "Exception", "IndexError",
    "KeyError", "LookupError", "NotImplementedError", "OverflowError", "RuntimeError",
    "StopIteration", "TypeError", "ValueError", "ZeroDivisionError",
    # 定数
    "Ellipsis", "NotImplemented",
)  # fmt: skip


def _facade_module() -> types.ModuleType:
    """テンプレートから `from api import define_template` で見える仮想モジュール。"""
    mod = types.ModuleType("api", "template authoring facade")
    mod.define_template = define_template  # type: ignore[attr-defined]
    mod.Template = Template  # type: ignore[attr-defined]
    mod.TemplateConfig = TemplateConfig  # type: ignore[attr-defined]
    mod.escape = html.escape  # type: ignore[attr-defined]
    return mod


def _make_import(allowed: frozenset[str], virtual: dict[str, types.ModuleType]):
    def _guarded_import(
        name: str,
        globals: Optional[dict[str, Any]] = None,
        locals: Optional[dict[str, Any]] = None,
        fromlist: Iterable[str] = (),
        level: int = 0,
    ) -> types.ModuleType:
        if level != 0:
            raise ImportError("relative imports are not available in templates")
        if name in virtual:
            return virtual[name]
        root = name.partition(".")[0]
        if root not in allowed:
            raise ImportError(
                f"import of {name!r} is not allowed in templates "
                f"(allowed: {', '.join(sorted(allowed))})"
            )
        return builtins.__import__(name, globals, locals, fromlist, level)

    return _guarded_import


# テンプレートから参照してよい dunder 名
_ALLOWED_DUNDER_NAMES = frozenset({"__name__"})


def _is_dunder(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


def check_source(tree: ast.AST) -> None:
    """評価前の静的検査。dunder 属性アクセスと dunder 名の参照を `CompileError` にする。"""
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and _is_dunder(node.attr):
            name = node.attr
        elif isinstance(node, ast.Name) and _is_dunder(node.id) and node.id not in _ALLOWED_DUNDER_NAMES:
            name = node.id
        else:
            continue
        line = getattr(node, "lineno", None)
        where = f" (line {line})" if line else ""
        raise CompileError(
            f"Access to {name!r} is not allowed in templates{where}",
            phase="bundle",
            line=line,
            suggestion="Templates may only use ctx, their own values and allowed modules",
        )


def make_sandbox_globals(allowed_modules: Optional[Iterable[str]] = None) -> dict[str, Any]:
    """評価ごとに新しいグローバル辞書を作る。

    Parameters
    ----------
    allowed_modules : Iterable[str] | None
        import を許可するトップレベルモジュール名。None なら設定 `MKR_SANDBOX_MODULES`。
    """
    allowed = frozenset(
        allowed_modules if allowed_modules is not None else settings.get().SANDBOX_MODULES
    )
    safe_builtins = {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES}
    safe_builtins["__import__"] = _make_import(allowed, {"api": _facade_module()})
    return {
        "__builtins__": safe_builtins,
        "__name__": SANDBOX_MODULE_NAME,
        "define_template": define_template,
        "Template": Template,
    }


__all__ = ["SANDBOX_MODULE_NAME", "check_source", "make_sandbox_globals"]
