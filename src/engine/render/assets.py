"""
どこで: `engine.render.assets`。
何を: 背景（色/画像）と音声トラックの指定を検証済みの値型へ解決する。
なぜ: 文字列 1 つでも詳細 dict でも指定でき、既定値（ループ/音量/フィット）を 1 箇所で決めるため。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Literal, Mapping, Optional, Union
from urllib.parse import urlparse

AssetType = Literal["image", "video", "audio", "color"]
BackgroundFit = Literal["cover", "contain", "fill"]

_IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif", ".bmp"}
_VIDEO_EXTS = {".mp4", ".webm", ".mov", ".m4v", ".mkv"}
_AUDIO_EXTS = {".mp3", ".wav", ".ogg", ".m4a", ".aac", ".flac", ".opus"}
_COLOR_RE = re.compile(r"^(#[0-9a-fA-F]{3,8}|(rgb|rgba|hsl|hsla)\(.*\)|[a-zA-Z]+)$")


@dataclass(frozen=True)
class Background:
    src: str
    type: AssetType
    fit: BackgroundFit = "cover"
    position: str = "center"
    opacity: float = 1.0


@dataclass(frozen=True)
class AudioTrack:
    src: str
    loop: bool = True
    volume: float = 1.0
    fade_in: float = 0.0
    fade_out: float = 0.0


def detect_asset_type(src: str) -> AssetType:
    """拡張子/書式から資産種別を推定する（拡張子の無い単語・#hex・rgb() は色）。"""
    path = urlparse(src).path if "://" in src else src
    ext = PurePosixPath(path).suffix.lower()
    if ext in _IMAGE_EXTS or src.startswith("data:image/"):
        return "image"
    if ext in _VIDEO_EXTS:
        return "video"
    if ext in _AUDIO_EXTS:
        return "audio"
    if _COLOR_RE.match(src.strip()):
        return "color"
    raise ValueError(f"cannot determine asset type of {src!r}")


def _non_negative(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"{name} must be a non-negative number, got {value!r}")
    return float(value)


def resolve_background(
    value: Union[str, Mapping[str, Any], Background, None],
) -> Optional[Background]:
    """背景指定を解決する（None はそのまま None）。動画背景は未対応。"""
    if value is None or isinstance(value, Background):
        return value
    raw: Mapping[str, Any] = {"src": value} if isinstance(value, str) else value
    src = str(raw["src"])
    kind = raw.get("type") or detect_asset_type(src)
    if kind not in ("image", "color"):
        raise ValueError(f"background must be an image or a color, got {kind} ({src!r})")
    fit = raw.get("fit", "cover")
    if fit not in ("cover", "contain", "fill"):
        raise ValueError(f"background fit must be cover, contain or fill, got {fit!r}")
    opacity = _non_negative(raw.get("opacity", 1.0), "background opacity")
    return Background(
        src=src,
        type=kind,
        fit=fit,
        position=str(raw.get("position", "center")),
        opacity=min(opacity, 1.0),
    )


def resolve_audio(
    value: Union[str, Mapping[str, Any], AudioTrack, None],
) -> Optional[AudioTrack]:
    """音声指定を解決する（既定: ループ有効、音量 1.0、フェード無し）。"""
    if value is None or isinstance(value, AudioTrack):
        return value
    raw: Mapping[str, Any] = {"src": value} if isinstance(value, str) else value
    return AudioTrack(
        src=str(raw["src"]),
        loop=bool(raw.get("loop", True)),
        volume=_non_negative(raw.get("volume", 1.0), "audio volume"),
        fade_in=_non_negative(raw.get("fade_in", raw.get("fadeIn", 0.0)), "audio fade_in"),
        fade_out=_non_negative(raw.get("fade_out", raw.get("fadeOut", 0.0)), "audio fade_out"),
    )


__all__ = [
    "AudioTrack",
    "Background",
    "detect_asset_type",
    "resolve_audio",
    "resolve_background",
]
