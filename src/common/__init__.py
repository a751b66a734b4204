"""
どこで: `common` パッケージ。
何を: 例外階層・環境変数設定・レジストリ基底などの軽量ユーティリティ。
なぜ: engine/api の各層から再利用する共通基盤を分離し、依存の向きを単純化するため。
"""

from .base_registry import BaseRegistry
from .errors import (
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

__all__ = [
    "BaseRegistry",
    "CompileError",
    "MarkreelError",
    "PlayerNotReadyError",
    "RenderEnvironmentError",
    "RenderError",
    "RenderPlanError",
    "TemplateRuntimeError",
    "TemplateStructureError",
    "UnknownPresetError",
    "ValidationError",
]
