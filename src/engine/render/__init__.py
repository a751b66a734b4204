"""
どこで: `engine.render` サブパッケージ。
何を: レンダープラン構築、アダプタ Protocol、フレームループ実行、ページ外枠/背景合成、資産/エンコード指定。
なぜ: テンプレート（純関数）と具体的なブラウザ/エンコーダの間を、検証済みの値とループだけでつなぐため。
"""

from .executor import execute_render_plan
from .plan import (
    RenderJob,
    RenderPlan,
    create_render_plan,
    resolve_all_presets,
    resolve_preset_config,
    resolve_render_config,
)
from .types import EncoderConfig, FrameRenderer, RendererConfig, RenderProgress, VideoEncoder

__all__ = [
    "EncoderConfig",
    "FrameRenderer",
    "RenderJob",
    "RenderPlan",
    "RenderProgress",
    "RendererConfig",
    "VideoEncoder",
    "create_render_plan",
    "execute_render_plan",
    "resolve_all_presets",
    "resolve_preset_config",
    "resolve_render_config",
]
