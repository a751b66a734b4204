"""
どこで: `engine.render.options`。
何を: 出力コンテナ/映像・音声コーデックの優先順/ビットレート（数値 or 品質プリセット名）の値型と解決。
なぜ: ジョブ指定を検証済みの不変値にしてからエンコーダへ渡し、既定値の解釈を 1 箇所に集めるため。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional, Sequence, Union

Container = Literal["mp4", "webm"]
AlphaMode = Literal["discard", "keep"]
Bitrate = Union[int, float, str]

# 映像の品質プリセット → ビットレート（bps）
VIDEO_QUALITY_PRESETS: dict[str, int] = {
    "very-low": 1_000_000,
    "low": 2_500_000,
    "medium": 5_000_000,
    "high": 8_000_000,
    "very-high": 16_000_000,
}
# 音声の品質プリセット → ビットレート（bps）
AUDIO_QUALITY_PRESETS: dict[str, int] = {
    "very-low": 48_000,
    "low": 64_000,
    "medium": 128_000,
    "high": 192_000,
    "very-high": 256_000,
}
DEFAULT_VIDEO_QUALITY = "high"
DEFAULT_AUDIO_BITRATE = 128_000
DEFAULT_KEY_FRAME_INTERVAL = 5.0

# コンテナごとの既定コーデック優先順（先頭ほど優先）
VIDEO_CODEC_PREFERENCES: dict[str, tuple[str, ...]] = {
    "mp4": ("avc", "vp9", "av1"),
    "webm": ("vp9", "av1"),
}
AUDIO_CODEC_PREFERENCES: dict[str, tuple[str, ...]] = {
    "mp4": ("aac", "opus"),
    "webm": ("opus",),
}

_KEY_ALIASES = {"keyFrameInterval": "key_frame_interval"}


def _codec_tuple(value: Any) -> Optional[tuple[str, ...]]:
    if value is None:
        return None
    if isinstance(value, str):
        return (value.lower(),)
    if isinstance(value, Sequence):
        return tuple(str(v).lower() for v in value)
    raise TypeError(f"codec must be a name or a list of names, got {type(value).__name__}")


def _normalize(value: Mapping[str, Any]) -> dict[str, Any]:
    return {_KEY_ALIASES.get(str(k), str(k)): v for k, v in value.items()}


@dataclass(frozen=True)
class VideoOptions:
    codec: Optional[tuple[str, ...]] = None
    bitrate: Optional[Bitrate] = None
    key_frame_interval: float = DEFAULT_KEY_FRAME_INTERVAL
    alpha: AlphaMode = "discard"


@dataclass(frozen=True)
class AudioOptions:
    codec: Optional[tuple[str, ...]] = None
    bitrate: Optional[Bitrate] = None


@dataclass(frozen=True)
class EncodingOptions:
    format: Container = "mp4"
    video: VideoOptions = field(default_factory=VideoOptions)
    audio: AudioOptions = field(default_factory=AudioOptions)

    @classmethod
    def from_mapping(cls, value: "EncodingOptions | Mapping[str, Any] | None") -> "EncodingOptions":
        """`{"format": "webm", "video": {"codec": ["vp9"], "bitrate": "high"}}` 形式から構築する。"""
        if value is None:
            return cls()
        if isinstance(value, EncodingOptions):
            return value
        data = _normalize(value)
        fmt = str(data.get("format", "mp4")).lower()
        if fmt not in VIDEO_CODEC_PREFERENCES:
            raise ValueError(f"unsupported container format {fmt!r} (expected mp4 or webm)")
        video = _normalize(data.get("video") or {})
        audio = _normalize(data.get("audio") or {})
        alpha = str(video.get("alpha", "discard"))
        if alpha not in ("discard", "keep"):
            raise ValueError(f"video.alpha must be 'discard' or 'keep', got {alpha!r}")
        interval = video.get("key_frame_interval", DEFAULT_KEY_FRAME_INTERVAL)
        if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
            raise ValueError("video.key_frame_interval must be a positive number of seconds")
        return cls(
            format=fmt,  # type: ignore[arg-type]
            video=VideoOptions(
                codec=_codec_tuple(video.get("codec")),
                bitrate=video.get("bitrate"),
                key_frame_interval=float(interval),
                alpha=alpha,  # type: ignore[arg-type]
            ),
            audio=AudioOptions(
                codec=_codec_tuple(audio.get("codec")),
                bitrate=audio.get("bitrate"),
            ),
        )


def _resolve_bitrate(value: Optional[Bitrate], presets: Mapping[str, int], default: int) -> int:
    if value is None:
        return default
    if isinstance(value, str):
        key = value.strip().lower()
        if key not in presets:
            raise ValueError(
                f"unknown quality preset {value!r}. Available: {', '.join(presets)}"
            )
        return presets[key]
    if isinstance(value, bool) or value <= 0:
        raise ValueError(f"bitrate must be positive, got {value!r}")
    return int(value)


def resolve_video_bitrate(value: Optional[Bitrate]) -> int:
    """数値はそのまま、プリセット名は定数へ。未指定は "high"。"""
    return _resolve_bitrate(value, VIDEO_QUALITY_PRESETS, VIDEO_QUALITY_PRESETS[DEFAULT_VIDEO_QUALITY])


def resolve_audio_bitrate(value: Optional[Bitrate]) -> int:
    """数値はそのまま、プリセット名は定数へ。未指定は 128 kbps。"""
    return _resolve_bitrate(value, AUDIO_QUALITY_PRESETS, DEFAULT_AUDIO_BITRATE)


def video_codec_candidates(options: EncodingOptions) -> tuple[str, ...]:
    """コンテナが受け付ける映像コーデック候補を優先順で返す。"""
    allowed = VIDEO_CODEC_PREFERENCES[options.format]
    wanted = options.video.codec or allowed
    return tuple(c for c in wanted if c in allowed)


def audio_codec_candidates(options: EncodingOptions) -> tuple[str, ...]:
    """コンテナが受け付ける音声コーデック候補を優先順で返す。"""
    allowed = AUDIO_CODEC_PREFERENCES[options.format]
    wanted = options.audio.codec or allowed
    return tuple(c for c in wanted if c in allowed)


__all__ = [
    "AUDIO_CODEC_PREFERENCES",
    "AUDIO_QUALITY_PRESETS",
    "AudioOptions",
    "EncodingOptions",
    "VIDEO_CODEC_PREFERENCES",
    "VIDEO_QUALITY_PRESETS",
    "VideoOptions",
    "audio_codec_candidates",
    "resolve_audio_bitrate",
    "resolve_video_bitrate",
    "video_codec_candidates",
]
