"""
どこで: `engine.export.registry`。
何を: レンダラ/エンコーダのバックエンド名 → クラスの登録表と、設定に従った生成ヘルパ。
なぜ: 並行ジョブごとに新しいアダプタ組を作り、バックエンドを環境変数で差し替えられるようにするため。
"""

from __future__ import annotations

from typing import Any, Optional

from common import settings
from common.base_registry import BaseRegistry
from engine.render.types import FrameRenderer, VideoEncoder

from .browser import PlaywrightRenderer
from .encoder import FFmpegEncoder

renderers = BaseRegistry("renderer")
encoders = BaseRegistry("encoder")

renderers.register("playwright")(PlaywrightRenderer)
encoders.register("ffmpeg")(FFmpegEncoder)


def create_renderer(name: Optional[str] = None, **kwargs: Any) -> FrameRenderer:
    """レンダラを生成する（`name` 省略時は `MKR_RENDERER`）。"""
    return renderers.create(name or settings.get().RENDERER_BACKEND, **kwargs)


def create_encoder(name: Optional[str] = None, **kwargs: Any) -> VideoEncoder:
    """エンコーダを生成する（`name` 省略時は `MKR_ENCODER`）。"""
    return encoders.create(name or settings.get().ENCODER_BACKEND, **kwargs)


def create_adapters(
    renderer: Optional[str] = None, encoder: Optional[str] = None
) -> tuple[FrameRenderer, VideoEncoder]:
    """1 ジョブ分の（レンダラ, エンコーダ）を新規に生成する。"""
    return create_renderer(renderer), create_encoder(encoder)


__all__ = ["create_adapters", "create_encoder", "create_renderer", "encoders", "renderers"]
