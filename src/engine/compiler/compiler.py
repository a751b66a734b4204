"""
どこで: `engine.compiler.compiler`。
何を: テンプレートソース → `Template` のコンパイル（構文→評価→契約確認）と、1 フレーム試行の検証。
なぜ: 失敗を段階付きのエラー値として返し、呼び出し側（プラン/プレイヤー）が一貫して扱えるようにするため。
"""

from __future__ import annotations

import ast
import logging
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from common.errors import (
    CompileError,
    MarkreelError,
    TemplateRuntimeError,
    TemplateStructureError,
    ValidationError,
)
from engine.core.constants import DEFAULT_FPS, DEFAULT_HEIGHT, DEFAULT_WIDTH
from engine.core.context import RenderContext, create_render_context
from engine.core.frame import truncate_for_error
from engine.core.template import Template, TemplateConfig

from .metadata import DEFAULT_EXPORT, TemplateMetadata, extract_metadata
from .sandbox import check_source, make_sandbox_globals

logger = logging.getLogger(__name__)

# validate_template の既定サンプル（2 秒分のタイムライン）
_SAMPLE_TOTAL_FRAMES = 2 * DEFAULT_FPS


@dataclass(frozen=True)
class CompileResult:
    """`template` か `error` のどちらか一方を持つ。"""

    template: Optional[Template] = None
    error: Optional[CompileError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.template is not None


@dataclass(frozen=True)
class ParsedTemplate:
    """ファイルから読み込んだテンプレート（静的メタデータ付き、未評価）。"""

    path: Path
    source: str
    metadata: TemplateMetadata

    @property
    def config(self) -> TemplateConfig:
        return self.metadata.config or TemplateConfig()


def _error_line(exc: BaseException, filename: str) -> Optional[int]:
    """例外のトレースバックからテンプレート内の行番号を拾う。"""
    line: Optional[int] = None
    for frame in traceback.extract_tb(exc.__traceback__):
        if frame.filename == filename:
            line = frame.lineno
    return line


def _resolve_template(namespace: Mapping[str, Any]) -> Template:
    """評価済み名前空間から render/config/defaults を解決する。

    - `render` は既定エクスポート（`template`）側を優先し、無ければ名前付き `render`。
    - `config` / `defaults` は名前付きエクスポートを優先し、無ければ既定エクスポート側。
    """
    default = namespace.get(DEFAULT_EXPORT)
    render: Any = None
    config: Any = None
    defaults: Any = None
    if isinstance(default, Template):
        render, config, defaults = default.render, default.config, default.defaults
    elif isinstance(default, Mapping):
        render = default.get("render")
        config = default.get("config")
        defaults = default.get("defaults")
    elif callable(default):
        render = default
    elif default is not None:
        raise CompileError(
            f"Default export `template` must be a template, a dict, or a render function, "
            f"got {type(default).__name__}",
            phase="contract",
        )

    if not callable(render):
        render = namespace.get("render")
    if not callable(render):
        raise CompileError(
            "Template must export a 'render' function",
            phase="contract",
            suggestion="Define `def render(ctx): ...` or `template = define_template(render=...)`",
        )
    if "config" in namespace:
        config = namespace["config"]
    if "defaults" in namespace:
        defaults = namespace["defaults"]
    if defaults is not None and not isinstance(defaults, Mapping):
        raise CompileError(
            f"Template defaults must be a mapping, got {type(defaults).__name__}",
            phase="contract",
        )
    try:
        return Template(render=render, config=TemplateConfig.from_mapping(config), defaults=defaults or {})
    except (TypeError, ValueError) as exc:
        raise CompileError(f"Invalid template config: {exc}", phase="contract", original=exc) from exc


def compile_template(source: str, *, filename: str = "<template>") -> CompileResult:
    """テンプレートソースをコンパイルする（例外は送出せず結果で返す）。

    1. bundle: `ast.parse` + `compile()`（構文エラー、dunder アクセスの拒否）
    2. evaluate: 新しいサンドボックス名前空間で実行（評価時例外/禁止 import）
    3. contract: render/config/defaults の解決
    """
    try:
        tree = ast.parse(source, filename, "exec")
        code = compile(tree, filename, "exec", dont_inherit=True)
    except (SyntaxError, ValueError) as exc:
        line = getattr(exc, "lineno", None)
        msg = getattr(exc, "msg", None) or str(exc)
        where = f" (line {line})" if line else ""
        return CompileResult(
            error=CompileError(
                f"Syntax error in template: {msg}{where}", phase="bundle", line=line, original=exc
            )
        )
    try:
        check_source(tree)
    except CompileError as err:
        return CompileResult(error=err)

    namespace = make_sandbox_globals()
    try:
        exec(code, namespace)
    except Exception as exc:
        logger.debug("template evaluation failed", exc_info=True)
        return CompileResult(
            error=CompileError(
                f"Template evaluation failed: {type(exc).__name__}: {exc}",
                phase="evaluate",
                line=_error_line(exc, filename),
                original=exc,
            )
        )

    try:
        template = _resolve_template(namespace)
    except CompileError as err:
        return CompileResult(error=err)
    logger.debug("compiled template %s (config=%s)", filename, template.config)
    return CompileResult(template=template)


def sample_context(template: Template) -> RenderContext:
    """検証用の既定コンテキスト（frame 0、既定寸法、テンプレート既定データ）。"""
    cfg = template.config
    return create_render_context(
        0,
        cfg.fps or DEFAULT_FPS,
        _SAMPLE_TOTAL_FRAMES,
        cfg.width or DEFAULT_WIDTH,
        cfg.height or DEFAULT_HEIGHT,
        data=template.defaults,
    )


def validate_template(
    template: Template, sample: Optional[RenderContext] = None
) -> Optional[MarkreelError]:
    """`render` を 1 回試行し、問題があればエラー値を返す（問題なければ None）。

    - 例外送出 → `TemplateRuntimeError`（元メッセージを保持）
    - 文字列以外を返す → `ValidationError`
    """
    ctx = sample if sample is not None else sample_context(template)
    try:
        markup = template.render(ctx)
    except Exception as exc:
        return TemplateRuntimeError(
            ctx.scene_frame,
            ctx.time_context().as_dict(),
            exc,
            data_snapshot=truncate_for_error(ctx.data),
        )
    if not isinstance(markup, str):
        return ValidationError(
            f"render() must return a string, got {type(markup).__name__}",
            details={"returned_type": type(markup).__name__},
            suggestion="Return the frame markup as a str",
        )
    return None


def load_template(path: str | Path) -> ParsedTemplate:
    """テンプレートファイルを読み、静的メタデータを付けて返す（評価はしない）。

    Raises
    ------
    CompileError
        構文エラー。
    TemplateStructureError
        既定エクスポートが無い/`render` が見当たらない。
    """
    p = Path(path)
    source = p.read_text(encoding="utf-8")
    metadata = extract_metadata(source, filename=str(p))
    if not metadata.has_render_export:
        raise TemplateStructureError(
            f"Template {p.name} must export a 'render' function",
            details={"path": str(p)},
        )
    return ParsedTemplate(path=p, source=source, metadata=metadata)


__all__ = [
    "CompileResult",
    "ParsedTemplate",
    "compile_template",
    "load_template",
    "sample_context",
    "validate_template",
]
