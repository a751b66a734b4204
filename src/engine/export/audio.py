"""
どこで: `engine.export.audio`。
何を: 音声ファイルを ffmpeg で float32 PCM に復号し、動画尺に合わせてループ/音量/フェードを適用する。
なぜ: 映像と同じ尺の単一音声トラックを作ってから mux し、終端の無音/はみ出しを防ぐため。
"""

from __future__ import annotations

import logging
import math
import subprocess
from pathlib import Path
from typing import Optional

import numpy as np

from .codecs import ffmpeg_executable

logger = logging.getLogger(__name__)

SAMPLE_RATE = 48_000
CHANNELS = 2


def decode_audio(
    src: str,
    *,
    sample_rate: int = SAMPLE_RATE,
    channels: int = CHANNELS,
    exe: Optional[str] = None,
) -> np.ndarray:
    """音声を `(samples, channels)` の float32 配列へ復号する。

    Raises
    ------
    RuntimeError
        ffmpeg が復号に失敗した。
    """
    cmd = [
        exe or ffmpeg_executable(),
        "-v", "error",
        "-i", src,
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-ac", str(channels),
        "-ar", str(sample_rate),
        "-",
    ]  # fmt: skip
    proc = subprocess.run(cmd, capture_output=True, check=False)
    if proc.returncode != 0:
        msg = proc.stderr.decode("utf-8", errors="replace").strip()
        raise RuntimeError(f"failed to decode audio {src!r}: {msg}")
    samples = np.frombuffer(proc.stdout, dtype="<f4")
    usable = samples.size - samples.size % channels
    logger.debug("decoded %d audio samples from %s", usable // channels, src)
    return samples[:usable].reshape(-1, channels).astype(np.float32)


def mix_audio_track(
    samples: np.ndarray,
    sample_rate: int,
    video_duration: float,
    *,
    loop: bool = True,
    volume: float = 1.0,
    fade_in: float = 0.0,
    fade_out: float = 0.0,
) -> np.ndarray:
    """動画尺ぴったりの音声を作る。

    - `loop=True` なら尺に満たない素材を繰り返す。`False` なら残りは無音。
    - フェードアウトは動画の終端から逆算する（ループしない短い素材は終端前に無音になりうる）。
    - 出力は [-1, 1] にクリップ。
    """
    if samples.ndim == 1:
        samples = samples[:, None]
    channels = samples.shape[1]
    total = max(0, int(round(video_duration * sample_rate)))
    out = np.zeros((total, channels), dtype=np.float32)
    if total == 0 or samples.shape[0] == 0:
        return out

    src = samples.astype(np.float32, copy=False)
    if loop and src.shape[0] < total:
        reps = math.ceil(total / src.shape[0])
        src = np.tile(src, (reps, 1))
    active = min(total, src.shape[0])
    out[:active] = src[:active]
    out *= np.float32(volume)

    if fade_in > 0:
        k = min(active, int(fade_in * sample_rate))
        if k > 0:
            out[:k] *= np.linspace(0.0, 1.0, k, endpoint=False, dtype=np.float32)[:, None]
    if fade_out > 0:
        k = min(total, int(fade_out * sample_rate))
        if k > 0:
            out[total - k :] *= np.linspace(1.0, 0.0, k, dtype=np.float32)[:, None]
    np.clip(out, -1.0, 1.0, out=out)
    return out


def write_pcm(path: Path, samples: np.ndarray) -> None:
    """f32le の生 PCM として書き出す（mux 入力用）。"""
    np.ascontiguousarray(samples, dtype="<f4").tofile(str(path))


__all__ = ["CHANNELS", "SAMPLE_RATE", "decode_audio", "mix_audio_track", "write_pcm"]
