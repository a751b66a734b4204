"""
どこで: `engine.export.codecs`。
何を: ffmpeg 実行ファイルの解決と、実行環境で使える映像/音声エンコーダとの交渉（優先順の先頭から採用）。
なぜ: コーデック非対応を書き出し途中ではなく開始前に `RenderEnvironmentError` として検出するため。
"""

from __future__ import annotations

import functools
import logging
import subprocess
from dataclasses import dataclass
from typing import Iterable

import imageio_ffmpeg

from common.errors import RenderEnvironmentError
from engine.render.options import (
    EncodingOptions,
    audio_codec_candidates,
    video_codec_candidates,
)

logger = logging.getLogger(__name__)

# 抽象コーデック名 → ffmpeg エンコーダ名（先頭ほど優先）
FFMPEG_VIDEO_ENCODERS: dict[str, tuple[str, ...]] = {
    "avc": ("libx264",),
    "vp9": ("libvpx-vp9",),
    "av1": ("libaom-av1", "libsvtav1"),
}
FFMPEG_AUDIO_ENCODERS: dict[str, tuple[str, ...]] = {
    "aac": ("aac",),
    "opus": ("libopus", "opus"),
}


@dataclass(frozen=True)
class NegotiatedCodec:
    codec: str
    encoder: str


def ffmpeg_executable() -> str:
    """imageio-ffmpeg が解決した ffmpeg 実行ファイルのパス。"""
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as exc:
        raise RenderEnvironmentError(
            f"ffmpeg executable not found: {exc}",
            suggestion="Install imageio-ffmpeg or set IMAGEIO_FFMPEG_EXE to an ffmpeg binary",
        ) from exc


@functools.lru_cache(maxsize=4)
def available_encoders(exe: str) -> frozenset[str]:
    """`ffmpeg -encoders` の出力からエンコーダ名の集合を得る（実行ファイルごとにキャッシュ）。"""
    try:
        proc = subprocess.run(
            [exe, "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise RenderEnvironmentError(f"cannot run ffmpeg ({exe}): {exc}") from exc
    if proc.returncode != 0:
        raise RenderEnvironmentError(
            f"ffmpeg -encoders exited with {proc.returncode}: {proc.stderr.strip()}"
        )
    return parse_encoder_list(proc.stdout)


def parse_encoder_list(text: str) -> frozenset[str]:
    """` V..... libx264  ...` 形式の行からエンコーダ名を取り出す。"""
    names: set[str] = set()
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and len(parts[0]) == 6 and parts[0][0] in "VAS" and parts[1] != "=":
            names.add(parts[1])
    return frozenset(names)


def _negotiate(
    kind: str,
    candidates: Iterable[str],
    table: dict[str, tuple[str, ...]],
    encoders: frozenset[str],
    container: str,
) -> NegotiatedCodec:
    tried: list[str] = []
    for codec in candidates:
        tried.append(codec)
        for name in table.get(codec, ()):
            if name in encoders:
                logger.debug("negotiated %s codec %s via %s", kind, codec, name)
                return NegotiatedCodec(codec=codec, encoder=name)
    raise RenderEnvironmentError(
        f"No supported {kind} codec for {container}: tried {', '.join(tried) or '(none)'}",
        details={"container": container, "tried": tried},
        suggestion="Use an ffmpeg build with libx264/libvpx-vp9, or choose another container",
    )


def negotiate_video_codec(options: EncodingOptions, encoders: Iterable[str]) -> NegotiatedCodec:
    return _negotiate(
        "video",
        video_codec_candidates(options),
        FFMPEG_VIDEO_ENCODERS,
        frozenset(encoders),
        options.format,
    )


def negotiate_audio_codec(options: EncodingOptions, encoders: Iterable[str]) -> NegotiatedCodec:
    return _negotiate(
        "audio",
        audio_codec_candidates(options),
        FFMPEG_AUDIO_ENCODERS,
        frozenset(encoders),
        options.format,
    )


__all__ = [
    "FFMPEG_AUDIO_ENCODERS",
    "FFMPEG_VIDEO_ENCODERS",
    "NegotiatedCodec",
    "available_encoders",
    "ffmpeg_executable",
    "negotiate_audio_codec",
    "negotiate_video_codec",
    "parse_encoder_list",
]
