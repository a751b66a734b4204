"""
どこで: `engine.export.encoder`。
何を: imageio-ffmpeg の `write_frames` に RGBA フレームを流し込み、MP4/WebM のバイト列を返すエンコーダ。
なぜ: 生フレームを同期でエンコードし、フレーム欠落や並べ替えの無い動画を作るため。

方針:
- 寸法はリサイズしない（`macro_block_size=1`）。4:2:0 出力のため幅/高さは偶数のみ受け付ける。
- タイムスタンプは厳密に単調増加でなければ `ValueError`。
- 音声は `finalize()` 時に ffmpeg で mux（映像はストリームコピー）。
- 一時ファイルは `dispose()` で削除（多重呼び出しに安全）。
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Optional

import imageio_ffmpeg
import numpy as np

from engine.core.timing import round_half_up
from engine.render.options import EncodingOptions, resolve_audio_bitrate, resolve_video_bitrate
from engine.render.types import EncoderConfig, RawFrame, validate_frame_dimensions

from .audio import CHANNELS, SAMPLE_RATE, decode_audio, mix_audio_track, write_pcm
from .codecs import (
    NegotiatedCodec,
    available_encoders,
    ffmpeg_executable,
    negotiate_audio_codec,
    negotiate_video_codec,
)

logger = logging.getLogger(__name__)


class FFmpegEncoder:
    """ffmpeg（imageio-ffmpeg 同梱）による同期エンコーダ。"""

    def __init__(self, *, log_level: str = "warning") -> None:
        self._log_level = log_level
        self._config: Optional[EncoderConfig] = None
        self._options = EncodingOptions()
        self._video: Optional[NegotiatedCodec] = None
        self._audio: Optional[NegotiatedCodec] = None
        self._writer: Any | None = None
        self._tmpdir: Optional[Path] = None
        self._video_path: Optional[Path] = None
        self._keep_alpha = False
        self._last_ts: Optional[float] = None
        self._frames = 0

    # ---- state ----
    @property
    def is_open(self) -> bool:
        return self._writer is not None

    @property
    def negotiated_video_codec(self) -> Optional[NegotiatedCodec]:
        return self._video

    # ---- adapter API ----
    def preflight(self) -> None:
        """ffmpeg が起動でき、エンコーダ一覧が取れることを確認する。"""
        available_encoders(ffmpeg_executable())

    def init(self, config: EncoderConfig) -> None:
        if self._writer is not None:
            raise RuntimeError("encoder is already initialized")
        options = config.encoding or EncodingOptions()
        if config.width % 2 or config.height % 2:
            raise ValueError(
                f"encoder dimensions must be even for 4:2:0 output, got {config.width}x{config.height}"
            )
        encoders = available_encoders(ffmpeg_executable())
        video = negotiate_video_codec(options, encoders)
        audio = negotiate_audio_codec(options, encoders) if config.audio is not None else None
        keep_alpha = options.video.alpha == "keep"
        if keep_alpha and video.codec != "vp9":
            raise ValueError("alpha 'keep' requires the webm container with the vp9 codec")

        tmpdir = Path(tempfile.mkdtemp(prefix="markreel-"))
        video_path = tmpdir / f"video.{options.format}"
        gop = max(1, round_half_up(options.video.key_frame_interval * config.fps))
        output_params = ["-g", str(gop)]
        if options.format == "mp4":
            output_params += ["-movflags", "+faststart"]
        writer = imageio_ffmpeg.write_frames(
            str(video_path),
            (config.width, config.height),
            pix_fmt_in="rgba" if keep_alpha else "rgb24",
            pix_fmt_out="yuva420p" if keep_alpha else "yuv420p",
            fps=config.fps,
            quality=None,
            bitrate=resolve_video_bitrate(options.video.bitrate),
            codec=video.encoder,
            macro_block_size=1,
            ffmpeg_log_level=self._log_level,
            output_params=output_params,
        )
        try:
            writer.send(None)  # ジェネレータを起動（ffmpeg プロセス開始）
        except Exception:
            shutil.rmtree(tmpdir, ignore_errors=True)
            raise

        self._config = config
        self._options = options
        self._video = video
        self._audio = audio
        self._writer = writer
        self._tmpdir = tmpdir
        self._video_path = video_path
        self._keep_alpha = keep_alpha
        self._last_ts = None
        self._frames = 0
        logger.debug(
            "encoder opened: %s/%s %dx%d @ %gfps gop=%d",
            options.format,
            video.encoder,
            config.width,
            config.height,
            config.fps,
            gop,
        )

    def add_frame(self, frame: RawFrame, timestamp_seconds: float) -> None:
        if self._writer is None or self._config is None:
            raise RuntimeError("encoder is not initialized")
        validate_frame_dimensions(frame, self._config.width, self._config.height)
        if self._last_ts is not None and timestamp_seconds <= self._last_ts:
            raise ValueError(
                f"timestamps must be strictly ascending: {timestamp_seconds} after {self._last_ts}"
            )
        self._writer.send(self._pack(frame))
        self._last_ts = float(timestamp_seconds)
        self._frames += 1

    def finalize(self) -> bytes:
        if self._writer is None or self._config is None:
            raise RuntimeError("encoder is not initialized")
        if self._frames == 0 or self._last_ts is None:
            raise ValueError("cannot finalize a video without frames")
        writer, self._writer = self._writer, None
        writer.close()
        assert self._video_path is not None
        path = self._video_path
        if self._config.audio is not None:
            path = self._mux_audio(path, self._last_ts + 1.0 / self._config.fps)
        data = path.read_bytes()
        logger.debug("encoder finalized: %d frames, %d bytes", self._frames, len(data))
        return data

    def dispose(self) -> None:
        writer, self._writer = self._writer, None
        if writer is not None:
            try:
                writer.close()
            except Exception:
                logger.debug("failed to close ffmpeg writer", exc_info=True)
        if self._tmpdir is not None:
            shutil.rmtree(self._tmpdir, ignore_errors=True)
            self._tmpdir = None

    # ---- internal helpers ----
    def _pack(self, frame: RawFrame) -> np.ndarray:
        arr = np.asarray(frame, dtype=np.uint8)
        if self._keep_alpha:
            if arr.shape[2] == 3:
                alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
                arr = np.concatenate([arr, alpha], axis=2)
            return np.ascontiguousarray(arr)
        return np.ascontiguousarray(arr[..., :3])

    def _mux_audio(self, video_path: Path, video_duration: float) -> Path:
        assert self._config is not None and self._config.audio is not None
        assert self._audio is not None and self._tmpdir is not None
        track = self._config.audio
        exe = ffmpeg_executable()
        samples = decode_audio(track.src, exe=exe)
        mixed = mix_audio_track(
            samples,
            SAMPLE_RATE,
            video_duration,
            loop=track.loop,
            volume=track.volume,
            fade_in=track.fade_in,
            fade_out=track.fade_out,
        )
        raw = self._tmpdir / "audio.f32le"
        write_pcm(raw, mixed)
        out = self._tmpdir / f"muxed.{self._options.format}"
        cmd = [
            exe, "-y", "-v", "error",
            "-i", str(video_path),
            "-f", "f32le", "-ar", str(SAMPLE_RATE), "-ac", str(CHANNELS), "-i", str(raw),
            "-map", "0:v:0", "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", self._audio.encoder,
            "-b:a", str(resolve_audio_bitrate(self._options.audio.bitrate)),
            "-shortest",
            str(out),
        ]  # fmt: skip
        proc = subprocess.run(cmd, capture_output=True, check=False)
        if proc.returncode != 0:
            msg = proc.stderr.decode("utf-8", errors="replace").strip()
            raise RuntimeError(f"failed to mux audio track: {msg}")
        return out


__all__ = ["FFmpegEncoder"]
