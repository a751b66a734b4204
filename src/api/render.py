"""
どこで: `api.render`（書き出しの高水準入口）。
何を: テンプレートファイルを読み込み、レンダープランを作って実行し、動画バイト列を返す（任意でファイル保存）。
なぜ: 「ファイル → プラン → アダプタ生成 → 実行 → 保存」の定型手順を 1 関数にまとめるため。

例:
    from api import render_video

    data = render_video("templates/title.py", output="out/title.mp4", fps=30, data={"title": "Hi"})
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from engine.compiler import load_template
from engine.core.constants import DEFAULT_OUTPUT_NAME
from engine.export.registry import create_encoder, create_renderer
from engine.render.assets import AudioTrack, Background
from engine.render.executor import ProgressCallback, execute_render_plan
from engine.render.options import EncodingOptions
from engine.render.plan import RenderJob, create_render_plan
from engine.render.types import FrameRenderer, VideoEncoder

logger = logging.getLogger(__name__)


def _write_output(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    part = path.with_suffix(path.suffix + ".part")
    try:
        part.write_bytes(data)
        part.replace(path)
    finally:
        if part.exists():
            part.unlink()
    return path


def render_video(
    template_path: Union[str, Path],
    *,
    output: Union[str, Path, None] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
    fps: Optional[float] = None,
    duration_seconds: Optional[float] = None,
    data: Optional[Mapping[str, Any]] = None,
    encoding: Union[EncodingOptions, Mapping[str, Any], None] = None,
    audio: Union[AudioTrack, str, Mapping[str, Any], None] = None,
    background: Union[Background, str, Mapping[str, Any], None] = None,
    output_name: str = DEFAULT_OUTPUT_NAME,
    fonts: Sequence[str] = (),
    renderer: Union[FrameRenderer, str, None] = None,
    encoder: Union[VideoEncoder, str, None] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> bytes:
    """テンプレートファイルを動画にする。

    Parameters
    ----------
    template_path : str | Path
        `template = define_template(...)` を持つテンプレートファイル。
    output : str | Path | None
        指定時はこのパスへ保存する（`.part` に書いてから置き換え）。
    width, height, fps, duration_seconds : 数値 | None
        未指定はテンプレート設定 → YAML 構成 → 組み込み既定の順に解決。
    renderer, encoder : アダプタ | バックエンド名 | None
        None なら `MKR_RENDERER` / `MKR_ENCODER` のバックエンドを生成する。

    Returns
    -------
    bytes
        エンコード済み動画。

    Raises
    ------
    CompileError / TemplateStructureError
        テンプレートファイルの構文/構造が不正。
    RenderPlanError / UnknownPresetError
        プランを確定できない。
    TemplateRuntimeError / RenderError / RenderEnvironmentError
        実行中の失敗。
    """
    parsed = load_template(template_path)
    job = RenderJob(
        template_code=parsed.source,
        duration_seconds=duration_seconds,
        width=width,
        height=height,
        fps=fps,
        fonts=tuple(fonts),
        encoding=encoding,
        audio=audio,
        background=background,
        data=data,
        output_name=output_name,
        filename=str(parsed.path),
    )
    plan = create_render_plan(job)
    if renderer is None or isinstance(renderer, str):
        renderer = create_renderer(renderer)
    if encoder is None or isinstance(encoder, str):
        encoder = create_encoder(encoder)
    result = execute_render_plan(plan, renderer, encoder, on_progress=on_progress)
    if output is not None:
        saved = _write_output(Path(output), result)
        logger.info("saved video: %s", saved)
    return result


__all__ = ["render_video"]
