from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from common import settings
from engine.export.browser import PlaywrightRenderer, to_rgba
from engine.export.encoder import FFmpegEncoder
from engine.export.registry import create_adapters, create_encoder, create_renderer
from engine.export.service import ExportService
from engine.render.plan import RenderJob
from tests._utils.dummies import FakeEncoder, FakeRenderer


@pytest.mark.smoke
def test_service_runs_job_and_writes_file(tmp_path: Path, simple_source: str) -> None:
    svc = ExportService(adapter_factory=lambda: (FakeRenderer(), FakeEncoder(payload=b"MP4")), out_dir=tmp_path)
    try:
        job_id = svc.submit(RenderJob(template_code=simple_source), name_prefix="demo")
        prog = svc.wait(job_id, timeout=10)
    finally:
        svc.close()
    assert prog.state == "completed", prog.error
    assert prog.frame == prog.total_frames == 10
    assert prog.path is not None and prog.path.read_bytes() == b"MP4"
    assert prog.path.name.startswith("demo_320x180_10fps_")
    assert not list(tmp_path.glob("*.part"))


def test_service_explicit_output_path(tmp_path: Path, simple_source: str) -> None:
    out = tmp_path / "nested" / "clip.mp4"
    svc = ExportService(adapter_factory=lambda: (FakeRenderer(), FakeEncoder()))
    try:
        prog = svc.wait(svc.submit(RenderJob(template_code=simple_source), out), timeout=10)
    finally:
        svc.close()
    assert prog.path == out
    assert out.read_bytes() == b"fake-video"


def test_service_reports_failures(tmp_path: Path) -> None:
    bad = "def render(ctx):\n    raise ValueError('nope')\n"
    svc = ExportService(adapter_factory=lambda: (FakeRenderer(), FakeEncoder()), workers=2, out_dir=tmp_path)
    try:
        prog = svc.wait(svc.submit(RenderJob(template_code=bad)), timeout=10)
        unknown = svc.progress("job_missing")
    finally:
        svc.close()
    assert prog.state == "failed"
    assert "nope" in prog.error
    assert prog.path is None
    assert list(tmp_path.iterdir()) == []
    assert unknown.state == "failed" and unknown.error == "unknown job"


def test_service_rejects_after_close(simple_source: str) -> None:
    svc = ExportService(adapter_factory=lambda: (FakeRenderer(), FakeEncoder()))
    svc.close()
    svc.close()
    with pytest.raises(RuntimeError):
        svc.submit(RenderJob(template_code=simple_source))


def test_registry_defaults_and_overrides(restore_settings: pytest.MonkeyPatch) -> None:
    assert isinstance(create_renderer(), PlaywrightRenderer)
    assert isinstance(create_encoder("FFMPEG"), FFmpegEncoder)
    r, e = create_adapters()
    assert isinstance(r, PlaywrightRenderer) and isinstance(e, FFmpegEncoder)
    restore_settings.setenv("MKR_ENCODER", "gstreamer")
    settings.reload_from_env()
    with pytest.raises(KeyError):
        create_encoder()


def test_to_rgba_conversions() -> None:
    gray = np.full((2, 3), 9, dtype=np.uint8)
    out = to_rgba(gray)
    assert out.shape == (2, 3, 4)
    assert out[0, 0].tolist() == [9, 9, 9, 255]
    rgb = np.zeros((2, 3, 3), dtype=np.uint8)
    assert to_rgba(rgb)[..., 3].min() == 255


def test_renderer_requires_init() -> None:
    with pytest.raises(RuntimeError):
        PlaywrightRenderer(timeout_ms=10).capture_frame("<p/>")
    PlaywrightRenderer().dispose()  # 未初期化でも安全


@pytest.mark.integration
def test_real_browser_capture() -> None:
    from common.errors import RenderEnvironmentError
    from engine.render.types import RendererConfig

    renderer = PlaywrightRenderer()
    try:
        renderer.preflight()
    except RenderEnvironmentError as exc:
        pytest.skip(f"chromium not available: {exc}")
    renderer.init(RendererConfig(width=32, height=16))
    try:
        frame = renderer.capture_frame('<div style="width:32px;height:16px;background:#ff0000"></div>')
    finally:
        renderer.dispose()
    assert frame.shape == (16, 32, 4)
    assert frame[8, 16].tolist()[:3] == [255, 0, 0]
