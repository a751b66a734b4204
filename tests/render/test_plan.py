from __future__ import annotations

import pytest

from common.errors import CompileError, RenderPlanError, UnknownPresetError
from engine.compiler import CompileResult
from engine.core.template import OutputPreset, TemplateConfig
from engine.render.plan import (
    RenderJob,
    ResolvedRenderConfig,
    create_render_plan,
    render_defaults,
    resolve_all_presets,
    resolve_preset_config,
    resolve_render_config,
)

DEFAULTS = ResolvedRenderConfig(width=1920, height=1080, fps=30, duration_seconds=5.0)


@pytest.mark.smoke
def test_defaults_from_yaml_and_constants() -> None:
    d = render_defaults()
    assert (d.width, d.height, d.fps, d.duration_seconds) == (1920, 1080, 30, 5)


def test_explicit_beats_template_beats_defaults() -> None:
    cfg = TemplateConfig(width=1080, height=1920, fps=24)
    out = resolve_render_config({"fps": 60, "width": 0}, cfg, DEFAULTS)
    assert out.fps == 60  # 明示値
    assert out.width == 1080  # 0 は未指定扱い → テンプレート
    assert out.height == 1920
    assert out.duration_seconds == 5.0  # 既定値


def test_resolve_preset_inherits_missing_fields() -> None:
    outputs = {"story": OutputPreset(width=1080, height=1920), "slow": OutputPreset(fps=12)}
    story = resolve_preset_config("story", outputs, DEFAULTS)
    assert (story.width, story.height, story.fps) == (1080, 1920, 30)
    all_presets = resolve_all_presets(outputs, DEFAULTS)
    assert [p.name for p in all_presets] == ["story", "slow"]
    assert all_presets[1].width == 1920 and all_presets[1].fps == 12


def test_unknown_preset_enumerates_available() -> None:
    outputs = {"story": OutputPreset(width=1), "square": OutputPreset(width=2)}
    with pytest.raises(UnknownPresetError) as ei:
        resolve_preset_config("tiktok", outputs, DEFAULTS)
    assert "story" in str(ei.value) and "square" in str(ei.value)


def test_plan_from_template_config(simple_source: str) -> None:
    plan = create_render_plan(RenderJob(template_code=simple_source))
    assert (plan.width, plan.height, plan.fps) == (320, 180, 10)
    assert plan.total_frames == 10
    assert plan.data["title"] == "hello"
    assert plan.encoding.format == "mp4"
    assert plan.encoding.video.bitrate == "high"  # configs/default.yaml


def test_job_overrides_and_data_overlay(simple_source: str) -> None:
    plan = create_render_plan(
        RenderJob(template_code=simple_source, fps=30, duration_seconds=2, data={"title": "job"})
    )
    assert plan.fps == 30
    assert plan.total_frames == 60
    assert plan.data["title"] == "job"
    assert plan.context(0).data["title"] == "job"


def test_fonts_job_first_then_template(preset_source: str) -> None:
    plan = create_render_plan(RenderJob(template_code=preset_source, fonts=["GlobalFont"]))
    assert plan.fonts == ("GlobalFont", "TemplateFont")
    assert plan.renderer_config().fonts == ("GlobalFont", "TemplateFont")


def test_named_output_preset(preset_source: str) -> None:
    plan = create_render_plan(RenderJob(template_code=preset_source, output_name="square"))
    assert (plan.width, plan.height, plan.fps) == (400, 400, 5)
    assert plan.context(0).output.name == "square"
    # ジョブの明示値はプリセットより優先
    plan2 = create_render_plan(RenderJob(template_code=preset_source, output_name="story", width=200))
    assert (plan2.width, plan2.height) == (200, 640)


def test_unknown_output_name_rejected(preset_source: str) -> None:
    with pytest.raises(UnknownPresetError):
        create_render_plan(RenderJob(template_code=preset_source, output_name="tiktok"))


def test_output_name_without_declared_presets_rejected(simple_source: str) -> None:
    # プリセットを持たないテンプレートでも既定以外の名前は黙って通さない
    with pytest.raises(UnknownPresetError) as ei:
        create_render_plan(RenderJob(template_code=simple_source, output_name="instagram"))
    assert ei.value.available == []
    assert "(none)" in str(ei.value)
    plan = create_render_plan(RenderJob(template_code=simple_source, output_name="default"))
    assert plan.context(0).output.name == "default"


def test_compile_failure_becomes_plan_error() -> None:
    with pytest.raises(RenderPlanError) as ei:
        create_render_plan(RenderJob(template_code="def render(ctx) return ''"))
    assert isinstance(ei.value.__cause__, CompileError)
    assert ei.value.details["compile_error"]["code"] == "COMPILE_ERROR"


def test_empty_compile_result_is_a_plan_error(monkeypatch: pytest.MonkeyPatch, simple_source: str) -> None:
    monkeypatch.setattr("engine.render.plan.compile_template", lambda source, filename: CompileResult())
    with pytest.raises(RenderPlanError, match="no template"):
        create_render_plan(RenderJob(template_code=simple_source))


def test_zero_frames_rejected(simple_source: str) -> None:
    with pytest.raises(RenderPlanError):
        create_render_plan(RenderJob(template_code=simple_source, fps=1, duration_seconds=0.2))


def test_invalid_assets_rejected(simple_source: str) -> None:
    with pytest.raises(RenderPlanError):
        create_render_plan(RenderJob(template_code=simple_source, background="loop.mp4"))
    with pytest.raises(RenderPlanError):
        create_render_plan(RenderJob(template_code=simple_source, encoding={"format": "avi"}))


def test_encoder_config_carries_audio_and_alpha(simple_source: str) -> None:
    plan = create_render_plan(
        RenderJob(
            template_code=simple_source,
            audio={"src": "music.mp3", "volume": 0.5},
            encoding={"format": "webm", "video": {"alpha": "keep"}},
        )
    )
    enc = plan.encoder_config()
    assert enc.audio.src == "music.mp3" and enc.audio.loop is True
    assert enc.encoding.format == "webm"
    assert plan.renderer_config().transparent is True
