"""
どこで: `engine.render.plan`。
何を: ジョブ（ソース + 上書き値）をコンパイルし、寸法/fps/尺/資産を確定した不変の `RenderPlan` にする。
なぜ: 実行器が受け取る時点で全ての値が決まっていて、途中で設定解釈が揺れないようにするため。

値の優先順（数値）: ジョブ明示値 > 名前付き出力プリセット > テンプレート設定 > 既定値。
配列（fonts/inline_css/stylesheets）: ジョブ分を先、テンプレート分を後に連結（重複除去しない）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence, Union

from common.errors import RenderPlanError, UnknownPresetError
from engine.compiler import compile_template
from engine.core.constants import (
    DEFAULT_DURATION_SECONDS,
    DEFAULT_FPS,
    DEFAULT_HEIGHT,
    DEFAULT_OUTPUT_NAME,
    DEFAULT_WIDTH,
)
from engine.core.context import RenderContext, create_render_context
from engine.core.template import OutputPreset, Template, TemplateConfig, positive_number
from engine.core.timing import total_frames_for
from util.utils import config_section

from .assets import AudioTrack, Background, resolve_audio, resolve_background
from .options import EncodingOptions
from .types import EncoderConfig, RendererConfig

logger = logging.getLogger(__name__)

_FIELDS = ("width", "height", "fps", "duration_seconds")


@dataclass(frozen=True)
class ResolvedRenderConfig:
    width: int
    height: int
    fps: float
    duration_seconds: float


@dataclass(frozen=True)
class ResolvedPreset:
    name: str
    width: int
    height: int
    fps: float


@dataclass(frozen=True)
class RenderJob:
    """レンダリング要求。数値は未指定（None）ならテンプレート/既定値に委ねる。"""

    template_code: str
    duration_seconds: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[float] = None
    fonts: Sequence[str] = ()
    inline_css: Sequence[str] = ()
    stylesheets: Sequence[str] = ()
    encoding: Union[EncodingOptions, Mapping[str, Any], None] = None
    audio: Union[AudioTrack, str, Mapping[str, Any], None] = None
    background: Union[Background, str, Mapping[str, Any], None] = None
    data: Optional[Mapping[str, Any]] = None
    output_name: str = DEFAULT_OUTPUT_NAME
    filename: str = "<template>"


@dataclass(frozen=True)
class RenderPlan:
    template: Template
    width: int
    height: int
    fps: float
    duration_seconds: float
    total_frames: int
    fonts: tuple[str, ...] = ()
    inline_css: tuple[str, ...] = ()
    stylesheets: tuple[str, ...] = ()
    encoding: EncodingOptions = field(default_factory=EncodingOptions)
    audio: Optional[AudioTrack] = None
    background: Optional[Background] = None
    data: Mapping[str, Any] = field(default_factory=dict)
    output_name: str = DEFAULT_OUTPUT_NAME

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def context(self, frame: int) -> RenderContext:
        return create_render_context(
            frame,
            self.fps,
            self.total_frames,
            self.width,
            self.height,
            data=self.data,
            output_name=self.output_name,
        )

    def renderer_config(self) -> RendererConfig:
        return RendererConfig(
            width=self.width,
            height=self.height,
            fonts=self.fonts,
            inline_css=self.inline_css,
            stylesheets=self.stylesheets,
            transparent=self.encoding.video.alpha == "keep",
        )

    def encoder_config(self) -> EncoderConfig:
        return EncoderConfig(
            width=self.width,
            height=self.height,
            fps=self.fps,
            encoding=self.encoding,
            audio=self.audio,
        )


def render_defaults() -> ResolvedRenderConfig:
    """組み込み既定値（1920x1080, 30fps, 5s）を YAML 構成 `render:` で上書きしたもの。"""
    section = config_section("render")
    width = positive_number(section.get("width")) or DEFAULT_WIDTH
    height = positive_number(section.get("height")) or DEFAULT_HEIGHT
    return ResolvedRenderConfig(
        width=int(width),
        height=int(height),
        fps=positive_number(section.get("fps")) or DEFAULT_FPS,
        duration_seconds=positive_number(section.get("duration_seconds")) or DEFAULT_DURATION_SECONDS,
    )


def _layer_values(layer: Any) -> dict[str, Any]:
    if layer is None:
        return {}
    if isinstance(layer, Mapping):
        return {k: layer.get(k) for k in _FIELDS}
    return {k: getattr(layer, k, None) for k in _FIELDS}


def _resolve_layers(layers: Sequence[Any], defaults: ResolvedRenderConfig) -> ResolvedRenderConfig:
    """先頭の層ほど優先。正の値だけを採用し、無ければ既定値。"""
    values = [_layer_values(layer) for layer in layers]
    out: dict[str, Any] = {}
    for key in _FIELDS:
        chosen = getattr(defaults, key)
        for layer in values:
            candidate = positive_number(layer.get(key))
            if candidate is not None:
                chosen = candidate
                break
        out[key] = chosen
    return ResolvedRenderConfig(
        width=int(out["width"]),
        height=int(out["height"]),
        fps=out["fps"],
        duration_seconds=out["duration_seconds"],
    )


def resolve_render_config(
    explicit: Union[Mapping[str, Any], None],
    template_config: Optional[TemplateConfig],
    defaults: Optional[ResolvedRenderConfig] = None,
) -> ResolvedRenderConfig:
    """明示値 > テンプレート設定 > 既定値 で寸法/fps/尺を決める（0 以下は未指定扱い）。"""
    base = defaults if defaults is not None else render_defaults()
    return _resolve_layers([explicit, template_config], base)


def resolve_preset_config(
    name: str,
    outputs: Mapping[str, OutputPreset],
    base: ResolvedRenderConfig,
) -> ResolvedPreset:
    """名前付き出力プリセットを解決する（未指定項目は `base` を継承）。

    Raises
    ------
    UnknownPresetError
        `name` が `outputs` に無い（利用可能な名前を列挙）。
    """
    if name not in outputs:
        raise UnknownPresetError(name, list(outputs))
    preset = outputs[name]
    return ResolvedPreset(
        name=name,
        width=int(preset.width or base.width),
        height=int(preset.height or base.height),
        fps=preset.fps or base.fps,
    )


def resolve_all_presets(
    outputs: Mapping[str, OutputPreset], base: ResolvedRenderConfig
) -> list[ResolvedPreset]:
    """宣言順に全プリセットを解決する。"""
    return [resolve_preset_config(name, outputs, base) for name in outputs]


def create_render_plan(job: RenderJob) -> RenderPlan:
    """ジョブをコンパイルしてレンダープランにする。

    Raises
    ------
    RenderPlanError
        コンパイル失敗（`__cause__` に CompileError）、総フレーム数 0、資産/エンコード指定が不正。
    """
    result = compile_template(job.template_code, filename=job.filename)
    if result.error is not None:
        raise RenderPlanError(
            f"Cannot build render plan: {result.error.message}",
            details={"compile_error": result.error.to_dict()},
        ) from result.error
    template = result.template
    if template is None:
        raise RenderPlanError("Cannot build render plan: compiler produced no template")
    cfg = template.config

    # 既定以外の出力名はテンプレートが宣言したプリセットでなければならない
    preset: Optional[OutputPreset] = None
    if job.output_name != DEFAULT_OUTPUT_NAME:
        if job.output_name not in cfg.outputs:
            raise UnknownPresetError(job.output_name, list(cfg.outputs))
        preset = cfg.outputs[job.output_name]
    resolved = _resolve_layers([job, preset, cfg], render_defaults())

    total = total_frames_for(resolved.fps, resolved.duration_seconds)
    if total < 1:
        raise RenderPlanError(
            f"Render plan has no frames (fps={resolved.fps}, duration={resolved.duration_seconds}s)",
            details={"fps": resolved.fps, "duration_seconds": resolved.duration_seconds},
        )

    try:
        encoding = EncodingOptions.from_mapping(
            job.encoding if job.encoding is not None else (config_section("encoding") or None)
        )
        audio = resolve_audio(job.audio)
        background = resolve_background(job.background)
    except (KeyError, TypeError, ValueError) as exc:
        raise RenderPlanError(f"Invalid render job: {exc}") from exc

    data = dict(template.defaults)
    data.update(job.data or {})

    plan = RenderPlan(
        template=template,
        width=resolved.width,
        height=resolved.height,
        fps=resolved.fps,
        duration_seconds=resolved.duration_seconds,
        total_frames=total,
        fonts=tuple(job.fonts) + cfg.fonts,
        inline_css=tuple(job.inline_css) + cfg.inline_css,
        stylesheets=tuple(job.stylesheets) + cfg.stylesheets,
        encoding=encoding,
        audio=audio,
        background=background,
        data=data,
        output_name=job.output_name,
    )
    logger.debug(
        "render plan: %dx%d @ %gfps, %gs, %d frames",
        plan.width,
        plan.height,
        plan.fps,
        plan.duration_seconds,
        plan.total_frames,
    )
    return plan


__all__ = [
    "RenderJob",
    "RenderPlan",
    "ResolvedPreset",
    "ResolvedRenderConfig",
    "create_render_plan",
    "render_defaults",
    "resolve_all_presets",
    "resolve_preset_config",
    "resolve_render_config",
]
