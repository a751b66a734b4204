from __future__ import annotations

from pathlib import Path
from typing import Any

import imageio_ffmpeg
import numpy as np
import pytest

from common.errors import RenderEnvironmentError
from engine.export import encoder as encoder_mod
from engine.export.encoder import FFmpegEncoder
from engine.render.options import EncodingOptions
from engine.render.types import EncoderConfig


class _WriterSpy:
    def __init__(self) -> None:
        self.kwargs: dict[str, Any] = {}
        self.frames: list[np.ndarray] = []
        self.closed = False

    def write_frames(self, path: str, size: tuple[int, int], **kwargs: Any):  # noqa: ANN201
        self.kwargs = {"path": path, "size": size, **kwargs}
        try:
            while True:
                frame = yield
                if frame is not None:
                    self.frames.append(frame)
        finally:
            self.closed = True
            Path(path).write_bytes(b"encoded")


@pytest.fixture()
def spy(monkeypatch: pytest.MonkeyPatch) -> _WriterSpy:
    s = _WriterSpy()
    monkeypatch.setattr(imageio_ffmpeg, "write_frames", s.write_frames)
    monkeypatch.setattr(encoder_mod, "ffmpeg_executable", lambda: "ffmpeg")
    monkeypatch.setattr(
        encoder_mod,
        "available_encoders",
        lambda exe: frozenset({"libx264", "libvpx-vp9", "aac", "libopus"}),
    )
    return s


def _frame(w: int = 4, h: int = 2) -> np.ndarray:
    return np.full((h, w, 4), 7, dtype=np.uint8)


@pytest.mark.smoke
def test_encode_frames_and_finalize(spy: _WriterSpy) -> None:
    enc = FFmpegEncoder()
    enc.init(EncoderConfig(width=4, height=2, fps=30, encoding=EncodingOptions()))
    assert enc.is_open
    assert enc.negotiated_video_codec.encoder == "libx264"
    for i in range(3):
        enc.add_frame(_frame(), i / 30)
    data = enc.finalize()
    enc.dispose()

    assert data == b"encoded"
    assert spy.closed
    assert len(spy.frames) == 3
    assert spy.frames[0].shape == (2, 4, 3)  # alpha は捨てる
    assert spy.kwargs["size"] == (4, 2)
    assert spy.kwargs["macro_block_size"] == 1
    assert spy.kwargs["bitrate"] == 8_000_000
    assert spy.kwargs["output_params"][:2] == ["-g", "150"]
    assert "+faststart" in spy.kwargs["output_params"]


def test_webm_keep_alpha(spy: _WriterSpy) -> None:
    enc = FFmpegEncoder()
    opts = EncodingOptions.from_mapping({"format": "webm", "video": {"alpha": "keep"}})
    enc.init(EncoderConfig(width=4, height=2, fps=10, encoding=opts))
    enc.add_frame(_frame(), 0.0)
    enc.finalize()
    enc.dispose()
    assert spy.kwargs["pix_fmt_in"] == "rgba"
    assert spy.kwargs["pix_fmt_out"] == "yuva420p"
    assert spy.frames[0].shape == (2, 4, 4)


def test_init_validation(spy: _WriterSpy) -> None:
    with pytest.raises(ValueError):
        FFmpegEncoder().init(EncoderConfig(width=5, height=2, fps=30))
    keep_mp4 = EncodingOptions.from_mapping({"video": {"alpha": "keep"}})
    with pytest.raises(ValueError):
        FFmpegEncoder().init(EncoderConfig(width=4, height=2, fps=30, encoding=keep_mp4))


def test_unsupported_codec_is_environment_error(monkeypatch: pytest.MonkeyPatch, spy: _WriterSpy) -> None:
    monkeypatch.setattr(encoder_mod, "available_encoders", lambda exe: frozenset({"aac"}))
    with pytest.raises(RenderEnvironmentError):
        FFmpegEncoder().init(EncoderConfig(width=4, height=2, fps=30))


def test_add_frame_rules(spy: _WriterSpy) -> None:
    enc = FFmpegEncoder()
    with pytest.raises(RuntimeError):
        enc.add_frame(_frame(), 0.0)
    enc.init(EncoderConfig(width=4, height=2, fps=30))
    with pytest.raises(ValueError) as ei:
        enc.add_frame(_frame(w=6), 0.0)
    assert "do not match" in str(ei.value)
    enc.add_frame(_frame(), 0.1)
    with pytest.raises(ValueError):
        enc.add_frame(_frame(), 0.1)
    enc.dispose()


def test_finalize_without_frames_and_dispose_idempotent(spy: _WriterSpy) -> None:
    enc = FFmpegEncoder()
    enc.init(EncoderConfig(width=4, height=2, fps=30))
    tmpdir = enc._tmpdir
    assert tmpdir is not None and tmpdir.exists()
    with pytest.raises(ValueError):
        enc.finalize()
    enc.dispose()
    enc.dispose()
    assert not tmpdir.exists()
    assert not enc.is_open


@pytest.mark.integration
def test_real_ffmpeg_mp4(tmp_path: Path) -> None:
    enc = FFmpegEncoder()
    try:
        enc.preflight()
    except RenderEnvironmentError as exc:
        pytest.skip(f"ffmpeg not available: {exc}")
    enc.init(EncoderConfig(width=64, height=48, fps=10))
    try:
        for i in range(5):
            frame = np.zeros((48, 64, 4), dtype=np.uint8)
            frame[..., 0] = i * 40
            enc.add_frame(frame, i / 10)
        data = enc.finalize()
    finally:
        enc.dispose()
    assert data[4:8] == b"ftyp"
