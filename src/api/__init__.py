"""
どこで: `api` 入口（高レベル公開 API）。
何を: テンプレート宣言・コンパイル/検証・レンダープラン・書き出し・プレビュー再生を再輸出。
なぜ: 利用者が単一名前空間からテンプレート作成 → 検証 → 書き出し/プレビューまで完結できるようにするため。

Usage:
    from api import define_template, render_video

    def render(ctx):
        return f"<h1 style='opacity:{ctx.scene_progress:.3f}'>{ctx.data['title']}</h1>"

    template = define_template(render=render, config={"fps": 30, "duration_seconds": 3})
"""

from common.errors import (
    CompileError,
    MarkreelError,
    PlayerNotReadyError,
    RenderEnvironmentError,
    RenderError,
    RenderPlanError,
    TemplateRuntimeError,
    TemplateStructureError,
    UnknownPresetError,
    ValidationError,
)
from engine.compiler import (
    CompileResult,
    ParsedTemplate,
    compile_template,
    extract_metadata,
    load_template,
    validate_template,
)
from engine.core.checkpoints import Checkpoint, CheckpointResolver
from engine.core.context import RenderContext, create_render_context
from engine.core.template import Template, TemplateConfig, define_template
from engine.render.executor import execute_render_plan
from engine.render.plan import (
    RenderJob,
    RenderPlan,
    create_render_plan,
    resolve_all_presets,
    resolve_preset_config,
    resolve_render_config,
)

from .player import LoadResult, Player
from .render import render_video

__all__ = [
    # テンプレート
    "define_template",
    "Template",
    "TemplateConfig",
    "RenderContext",
    "create_render_context",
    # コンパイル/検証
    "compile_template",
    "validate_template",
    "extract_metadata",
    "load_template",
    "CompileResult",
    "ParsedTemplate",
    # 書き出し
    "RenderJob",
    "RenderPlan",
    "create_render_plan",
    "resolve_render_config",
    "resolve_preset_config",
    "resolve_all_presets",
    "execute_render_plan",
    "render_video",
    # プレビュー
    "Player",
    "LoadResult",
    "Checkpoint",
    "CheckpointResolver",
    # エラー
    "MarkreelError",
    "CompileError",
    "ValidationError",
    "TemplateStructureError",
    "TemplateRuntimeError",
    "RenderError",
    "RenderEnvironmentError",
    "RenderPlanError",
    "UnknownPresetError",
    "PlayerNotReadyError",
]

# バージョン情報
__version__ = "2025.10"
