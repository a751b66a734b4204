"""
どこで: `engine.render.executor`。
何を: `RenderPlan` を 1 フレームずつ render → capture → encode し、最後に動画バイト列を返す。
なぜ: キャプチャ順 = タイムスタンプ順を保証するため、フレームループは厳密に逐次で回す。

失敗時の方針:
- テンプレート例外は `TemplateRuntimeError`（フレーム/時間/データ抜粋付き）で即時中断。
- アダプタ例外は `RenderError`（段階/フレーム付き）で中断。
- `finalize()` は全フレーム成功時のみ。`dispose()` は成否に関わらず両アダプタで必ず呼ぶ。
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from common import settings
from common.errors import MarkreelError, RenderError
from engine.core.frame import render_frame_markup

from .markup import build_composite_markup
from .plan import RenderPlan
from .types import FrameRenderer, RenderProgress, VideoEncoder

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[RenderProgress], None]


def run_preflight(*adapters: Any) -> None:
    """`preflight()` を持つアダプタだけ事前確認を実行する（RenderEnvironmentError を想定）。"""
    for adapter in adapters:
        check = getattr(adapter, "preflight", None)
        if callable(check):
            check()


def _dispose(adapter: Any, role: str) -> None:
    # 後片付けの失敗で本来のエラーを隠さない
    try:
        adapter.dispose()
    except Exception:
        logger.warning("failed to dispose %s", role, exc_info=True)


def _adapter_error(stage: str, frame: Optional[int], exc: Exception) -> RenderError:
    where = f" at frame {frame}" if frame is not None else ""
    return RenderError(
        f"{stage} failed{where}: {type(exc).__name__}: {exc}",
        stage=stage,  # type: ignore[arg-type]
        frame=frame,
        original=exc,
    )


def execute_render_plan(
    plan: RenderPlan,
    renderer: FrameRenderer,
    encoder: VideoEncoder,
    *,
    on_progress: Optional[ProgressCallback] = None,
) -> bytes:
    """プランを実行して動画バイト列を返す。

    Parameters
    ----------
    plan : RenderPlan
        `create_render_plan()` の結果。
    renderer : FrameRenderer
        このジョブ専用のレンダラ（並行ジョブ間で共有しない）。
    encoder : VideoEncoder
        このジョブ専用のエンコーダ。
    on_progress : Callable[[RenderProgress], None] | None
        各フレームのエンコード後に呼ばれる。

    Raises
    ------
    RenderEnvironmentError
        事前確認で実行環境が要件を満たさない。
    TemplateRuntimeError
        テンプレートの `render()` が例外を送出した。
    RenderError
        レンダラ/エンコーダが失敗した。
    """
    run_preflight(renderer, encoder)
    debug_frames = settings.get().DEBUG_FRAMES
    started = time.perf_counter()
    logger.info(
        "rendering %d frames (%dx%d @ %gfps)", plan.total_frames, plan.width, plan.height, plan.fps
    )
    try:
        try:
            renderer.init(plan.renderer_config())
            encoder.init(plan.encoder_config())
        except MarkreelError:
            raise
        except Exception as exc:
            logger.exception("adapter initialization failed")
            raise _adapter_error("init", None, exc) from exc

        for frame in range(plan.total_frames):
            ctx = plan.context(frame)
            markup = render_frame_markup(plan.template, ctx)
            markup = build_composite_markup(markup, plan.background, plan.width, plan.height)
            try:
                pixels = renderer.capture_frame(markup)
            except Exception as exc:
                logger.exception("capture failed at frame %d", frame)
                raise _adapter_error("capture", frame, exc) from exc
            try:
                encoder.add_frame(pixels, frame / plan.fps)
            except Exception as exc:
                logger.exception("encode failed at frame %d", frame)
                raise _adapter_error("encode", frame, exc) from exc
            if debug_frames:
                logger.debug("frame %d/%d encoded", frame + 1, plan.total_frames)
            if on_progress is not None:
                on_progress(RenderProgress(frame=frame, total_frames=plan.total_frames, fps=plan.fps))

        try:
            data = encoder.finalize()
        except Exception as exc:
            logger.exception("finalize failed")
            raise _adapter_error("finalize", None, exc) from exc
    finally:
        _dispose(renderer, "renderer")
        _dispose(encoder, "encoder")

    elapsed = time.perf_counter() - started
    logger.info(
        "rendered %d frames in %.2fs (%d bytes)", plan.total_frames, elapsed, len(data)
    )
    return data


__all__ = ["ProgressCallback", "execute_render_plan", "run_preflight"]
